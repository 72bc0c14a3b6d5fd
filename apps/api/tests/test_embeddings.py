import json
import unittest
from unittest.mock import MagicMock, patch

import httpx

from support_agent.config import settings
from support_agent.core.errors import EmbeddingFailure
from support_agent.providers.embeddings.base import EmbeddingsProvider
from support_agent.providers.embeddings.hash import HashEmbeddings
from support_agent.providers.embeddings.openai import OpenAIEmbeddings
from support_agent.providers.embeddings.registry import (
    create_embeddings_provider,
    normalize_embeddings_provider_id,
)
from support_agent.providers.embeddings.tei import TEIEmbeddings
from support_agent.providers.factory import (
    get_embeddings_provider,
    get_llm_provider,
    reset_embeddings_provider_cache,
    reset_llm_provider_cache,
)
from support_agent.providers.llm import OllamaLocal, OpenAILLM


class OpenAIEmbeddingsTests(unittest.TestCase):
    def test_batch_is_one_request_and_results_follow_input_order(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            self.assertEqual(request.headers["authorization"], "Bearer sk-test")
            self.assertEqual(request.url.path, "/v1/embeddings")
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"index": 1, "embedding": [0.0, 1.0]},
                        {"index": 0, "embedding": [1.0, 0.0]},
                    ]
                },
            )

        client = httpx.Client(transport=httpx.MockTransport(handler))
        embeddings = OpenAIEmbeddings(api_key="sk-test", client=client)

        vectors = embeddings.embed_documents(["first", "second"])

        self.assertEqual(vectors, [[1.0, 0.0], [0.0, 1.0]])
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0]["input"], ["first", "second"])
        self.assertEqual(seen[0]["model"], "text-embedding-3-small")
        self.assertEqual(embeddings.dim, 1536)

    def test_missing_api_key_is_rejected(self):
        with self.assertRaises(ValueError):
            OpenAIEmbeddings(api_key=None).embed_query("hello")


class EmbeddingsFacadeTests(unittest.TestCase):
    def test_hash_provider_is_deterministic_and_sized(self):
        provider = EmbeddingsProvider(provider="hash", dim=16)

        first = provider.embed_query("refund policy")
        second = provider.embed_documents(["refund policy", "shipping"])

        self.assertEqual(provider.dim, 16)
        self.assertEqual(len(first), 16)
        self.assertEqual(first, second[0])
        self.assertNotEqual(second[0], second[1])

    def test_empty_batch_makes_no_call(self):
        impl = MagicMock(dim=8, model_name="mock")
        with patch(
            "support_agent.providers.embeddings.registry.create_embeddings_provider",
            return_value=impl,
        ):
            provider = EmbeddingsProvider(provider="hash")
        self.assertEqual(provider.embed_documents([]), [])
        impl.embed_documents.assert_not_called()

    def test_failures_are_wrapped_with_cause(self):
        impl = MagicMock(dim=8, model_name="mock")
        impl.embed_query.side_effect = ValueError("bad input")
        with patch(
            "support_agent.providers.embeddings.registry.create_embeddings_provider",
            return_value=impl,
        ):
            provider = EmbeddingsProvider(provider="hash")

        with self.assertRaises(EmbeddingFailure) as ctx:
            provider.embed_query("hello")
        self.assertIsInstance(ctx.exception.__cause__, ValueError)
        self.assertFalse(ctx.exception.retryable)

    @patch("support_agent.core.reliability.time.sleep", return_value=None)
    def test_transient_failures_are_retried(self, _mock_sleep):
        impl = MagicMock(dim=2, model_name="mock")
        impl.embed_documents.side_effect = [
            httpx.ConnectError("reset"),
            [[0.1, 0.2]],
        ]
        with patch(
            "support_agent.providers.embeddings.registry.create_embeddings_provider",
            return_value=impl,
        ):
            provider = EmbeddingsProvider(provider="hash")

        self.assertEqual(provider.embed_documents(["x"]), [[0.1, 0.2]])
        self.assertEqual(impl.embed_documents.call_count, 2)

    def test_vector_count_mismatch_is_a_failure(self):
        impl = MagicMock(dim=2, model_name="mock")
        impl.embed_documents.return_value = [[0.1, 0.2]]
        with patch(
            "support_agent.providers.embeddings.registry.create_embeddings_provider",
            return_value=impl,
        ):
            provider = EmbeddingsProvider(provider="hash")

        with self.assertRaises(EmbeddingFailure):
            provider.embed_documents(["a", "b"])


class RegistryTests(unittest.TestCase):
    def test_aliases_normalize(self):
        self.assertEqual(normalize_embeddings_provider_id(" HF_LOCAL "), "sentence-transformers")
        self.assertEqual(normalize_embeddings_provider_id("OpenAI"), "openai")

    def test_unknown_provider_is_rejected(self):
        with self.assertRaises(ValueError):
            create_embeddings_provider(provider="word2vec")

    def test_hash_provider_from_registry(self):
        provider = create_embeddings_provider(provider="hash", dim=32)
        self.assertIsInstance(provider, HashEmbeddings)
        self.assertEqual(provider.dim, 32)

    @patch("support_agent.providers.embeddings.tei.httpx.post")
    def test_tei_posts_inputs_and_checks_dimension(self, mock_post):
        mock_post.return_value = MagicMock(
            json=MagicMock(return_value=[[0.1, 0.2, 0.3]]),
            raise_for_status=MagicMock(return_value=None),
        )
        tei = TEIEmbeddings(base_url="http://tei:8080/", dim=3)

        self.assertEqual(tei.embed_query("hello"), [0.1, 0.2, 0.3])
        self.assertEqual(mock_post.call_args.args[0], "http://tei:8080/embed")

        tei_wrong = TEIEmbeddings(base_url="http://tei:8080", dim=4)
        with self.assertRaises(ValueError):
            tei_wrong.embed_documents(["hello"])

class ProviderFactoryTests(unittest.TestCase):
    def setUp(self):
        reset_embeddings_provider_cache()
        reset_llm_provider_cache()

    def tearDown(self):
        reset_embeddings_provider_cache()
        reset_llm_provider_cache()

    def test_embeddings_provider_is_built_once_from_settings(self):
        with patch.object(settings, "embeddings_provider", "hash"):
            first = get_embeddings_provider()
            second = get_embeddings_provider()

        self.assertIs(first, second)
        self.assertEqual(first.model_name, "hash")
        self.assertEqual(len(first.embed_query("refund policy")), first.dim)

    def test_llm_provider_follows_settings(self):
        with patch.object(settings, "llm_provider", "ollama"):
            self.assertIsInstance(get_llm_provider(), OllamaLocal)

        reset_llm_provider_cache()
        with patch.object(settings, "llm_provider", "openai"), patch.object(
            settings, "openai_api_key", None
        ):
            self.assertIsInstance(get_llm_provider(), OpenAILLM)

        reset_llm_provider_cache()
        with patch.object(settings, "llm_provider", "claude"):
            with self.assertRaises(ValueError):
                get_llm_provider()



if __name__ == "__main__":
    unittest.main()

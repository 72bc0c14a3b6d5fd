from functools import lru_cache

from support_agent.config import settings

from .embeddings.base import EmbeddingsProvider
from .llm.ollama_local import OllamaLocal
from .llm.openai_llm import OpenAILLM
from .speech.openai_speech import OpenAISpeech


@lru_cache(maxsize=1)
def get_embeddings_provider() -> EmbeddingsProvider:
    return EmbeddingsProvider(
        provider=settings.embeddings_provider,
        model_name=settings.embedding_model
        if settings.embeddings_provider.strip().lower() == "openai"
        else None,
    )


def reset_embeddings_provider_cache():
    get_embeddings_provider.cache_clear()


@lru_cache(maxsize=1)
def get_llm_provider():
    llm_provider_type = (settings.llm_provider or "openai").strip().lower()
    if llm_provider_type == "openai":
        # A missing key fails per request (503), not at startup.
        return OpenAILLM(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            base_url=settings.openai_base_url,
        )

    if llm_provider_type in {"ollama", "ollama_local"}:
        return OllamaLocal()
    raise ValueError(f"Unknown LLM provider: {llm_provider_type}")


def reset_llm_provider_cache():
    get_llm_provider.cache_clear()


@lru_cache(maxsize=1)
def get_speech_provider() -> OpenAISpeech:
    return OpenAISpeech(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        stt_model=settings.stt_model,
        tts_model=settings.tts_model,
        tts_voice=settings.tts_voice,
    )

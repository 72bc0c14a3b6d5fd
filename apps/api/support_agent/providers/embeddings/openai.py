from __future__ import annotations

import os
from typing import List

import httpx

from .base import EmbeddingsProvider

# Output sizes of the hosted models, used when no explicit dimension is set.
KNOWN_MODEL_DIMS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddings(EmbeddingsProvider):
    """OpenAI ``/embeddings`` client; one request per batch, results in input order."""

    def __init__(
        self,
        *,
        api_key: str | None,
        model_name: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        dim: int | None = None,
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.dim = dim or KNOWN_MODEL_DIMS.get(model_name)
        self._client = client

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY is not set")

        payload = {"model": self.model_name, "input": list(texts)}
        if self.dim and self.model_name.startswith("text-embedding-3"):
            payload["dimensions"] = self.dim

        timeout = float(os.getenv("EMBEDDINGS_HTTP_TIMEOUT_SECONDS", "30"))
        headers = {"Authorization": f"Bearer {self.api_key}"}
        url = f"{self.base_url}/embeddings"
        if self._client is not None:
            response = self._client.post(url, json=payload, headers=headers, timeout=timeout)
        else:
            response = httpx.post(url, json=payload, headers=headers, timeout=timeout)
        response.raise_for_status()

        data = response.json().get("data") or []
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in ordered]

    def embed_query(self, text: str) -> List[float]:
        return self.embed_documents([text])[0]

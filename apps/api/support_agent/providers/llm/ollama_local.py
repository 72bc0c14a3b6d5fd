from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import httpx

from .base import LLMProvider


class OllamaLocal(LLMProvider):
    def __init__(
        self,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model or os.getenv("OLLAMA_MODEL", "llama3.1:8b")
        self.base_url = (
            base_url or os.getenv("OLLAMA_BASE_URL") or "http://localhost:11434"
        ).rstrip("/")
        env_timeout = os.getenv("OLLAMA_TIMEOUT_S") or os.getenv("LLM_TIMEOUT_S")
        self.timeout_s = float(env_timeout) if env_timeout else timeout_s
        self.transport = transport
        self.name = f"ollama_{self.model}"

    async def complete_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }

        url = f"{self.base_url}/api/chat"
        async with httpx.AsyncClient(
            timeout=self.timeout_s, transport=self.transport
        ) as client:
            resp = await client.post(
                url, headers={"Content-Type": "application/json"}, json=payload
            )
            resp.raise_for_status()
            body = resp.json()

        message = body.get("message") or {}
        return message.get("content") or ""

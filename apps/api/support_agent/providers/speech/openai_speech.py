from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import httpx

from support_agent.core.errors import SpeechFailure

from .audio import convert_to_mp3

logger = logging.getLogger(__name__)


@dataclass
class Transcription:
    text: str
    language: str = "en"


class OpenAISpeech:
    """Whisper transcription and TTS synthesis against the OpenAI audio endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        stt_model: str = "whisper-1",
        tts_model: str = "tts-1",
        tts_voice: str = "alloy",
        timeout_s: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY") or ""
        self.base_url = (
            base_url or os.getenv("OPENAI_BASE_URL") or "https://api.openai.com/v1"
        ).rstrip("/")
        self.stt_model = stt_model
        self.tts_model = tts_model
        self.tts_voice = tts_voice
        env_timeout = os.getenv("SPEECH_TIMEOUT_S")
        self.timeout_s = float(env_timeout) if env_timeout else timeout_s
        self.transport = transport

    def _headers(self) -> dict:
        if not self.api_key:
            raise SpeechFailure("OPENAI_API_KEY is required for speech services.")
        return {"Authorization": f"Bearer {self.api_key}"}

    async def transcribe(self, audio_path: str) -> Transcription:
        headers = self._headers()
        converted = await convert_to_mp3(audio_path)
        try:
            with open(converted, "rb") as fh:
                audio_bytes = fh.read()

            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self.transport
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers=headers,
                    data={"model": self.stt_model, "response_format": "verbose_json"},
                    files={"file": ("audio.mp3", audio_bytes, "audio/mpeg")},
                )
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, OSError, ValueError) as exc:
            logger.error("transcription_failed", extra={"error": str(exc)})
            raise SpeechFailure(f"STT failed: {exc}", cause=exc) from exc
        finally:
            if converted != audio_path:
                try:
                    os.remove(converted)
                except OSError:
                    logger.warning(
                        "audio_cleanup_failed", extra={"path": converted}
                    )

        text = body.get("text") or ""
        language = body.get("language") or "en"
        logger.info(
            "transcription_completed",
            extra={"language": language, "text_chars": len(text)},
        )
        return Transcription(text=text, language=language)

    async def synthesize(self, text: str) -> bytes:
        headers = self._headers()
        payload = {
            "model": self.tts_model,
            "voice": self.tts_voice,
            "input": text,
            "response_format": "mp3",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self.transport
            ) as client:
                resp = await client.post(
                    f"{self.base_url}/audio/speech", headers=headers, json=payload
                )
                resp.raise_for_status()
                audio = resp.content
        except httpx.HTTPError as exc:
            logger.error("tts_failed", extra={"error": str(exc)})
            raise SpeechFailure(f"TTS failed: {exc}", cause=exc) from exc

        logger.info("tts_completed", extra={"audio_bytes": len(audio)})
        return audio

import asyncio
import os
import tempfile
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from support_agent.core.errors import SpeechFailure
from support_agent.providers.speech.audio import convert_to_mp3, converted_path_for
from support_agent.providers.speech.openai_speech import OpenAISpeech

BASE_URL = "https://api.openai.com/v1"


class ConvertToMp3Tests(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".webm")
        with os.fdopen(fd, "wb") as fh:
            fh.write(b"webm-bytes")

    def tearDown(self):
        for path in (self.path, converted_path_for(self.path)):
            if os.path.exists(path):
                os.remove(path)

    def test_converted_path_sits_beside_input(self):
        self.assertEqual(converted_path_for("/tmp/rec.webm"), "/tmp/rec_converted.mp3")

    def test_missing_ffmpeg_falls_back_to_input(self):
        with patch(
            "support_agent.providers.speech.audio.asyncio.create_subprocess_exec",
            side_effect=FileNotFoundError("ffmpeg"),
        ):
            self.assertEqual(asyncio.run(convert_to_mp3(self.path)), self.path)

    def test_failed_conversion_falls_back_to_input(self):
        proc = MagicMock(returncode=1)
        proc.communicate = AsyncMock(return_value=(b"", b"Invalid data"))
        with patch(
            "support_agent.providers.speech.audio.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=proc),
        ) as mock_exec:
            self.assertEqual(asyncio.run(convert_to_mp3(self.path)), self.path)

        args = mock_exec.call_args.args
        self.assertEqual(args[1:3], ("-y", "-i"))
        self.assertIn("16000", args)
        self.assertIn("64k", args)

    def test_missing_input_raises(self):
        with self.assertRaises(FileNotFoundError):
            asyncio.run(convert_to_mp3("/nonexistent/audio.webm"))


class OpenAISpeechTests(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".mp3")
        with os.fdopen(fd, "wb") as fh:
            fh.write(b"ID3audio")

    def tearDown(self):
        if os.path.exists(self.path):
            os.remove(self.path)

    def test_transcribe_sends_verbose_json_request(self):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = request.content
            return httpx.Response(200, json={"text": "Where is my order?", "language": "english"})

        speech = OpenAISpeech(api_key="sk-test", base_url=BASE_URL, transport=httpx.MockTransport(handler))
        with patch(
            "support_agent.providers.speech.openai_speech.convert_to_mp3",
            new=AsyncMock(return_value=self.path),
        ):
            result = asyncio.run(speech.transcribe(self.path))

        self.assertEqual(result.text, "Where is my order?")
        self.assertEqual(result.language, "english")
        self.assertEqual(captured["path"], "/v1/audio/transcriptions")
        self.assertIn(b"verbose_json", captured["body"])
        self.assertIn(b"whisper-1", captured["body"])

    def test_transcription_language_defaults_to_english(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"text": "hi"}))
        speech = OpenAISpeech(api_key="sk-test", base_url=BASE_URL, transport=transport)
        with patch(
            "support_agent.providers.speech.openai_speech.convert_to_mp3",
            new=AsyncMock(return_value=self.path),
        ):
            self.assertEqual(asyncio.run(speech.transcribe(self.path)).language, "en")

    def test_synthesize_returns_audio_bytes(self):
        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/v1/audio/speech")
            return httpx.Response(200, content=b"mp3-bytes")

        speech = OpenAISpeech(api_key="sk-test", base_url=BASE_URL, transport=httpx.MockTransport(handler))
        self.assertEqual(asyncio.run(speech.synthesize("Hello")), b"mp3-bytes")

    def test_synthesize_failure_is_speech_failure(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(503, json={"error": "busy"}))
        speech = OpenAISpeech(api_key="sk-test", base_url=BASE_URL, transport=transport)
        with self.assertRaises(SpeechFailure) as ctx:
            asyncio.run(speech.synthesize("Hello"))
        self.assertTrue(ctx.exception.retryable)

    def test_missing_api_key_is_speech_failure(self):
        speech = OpenAISpeech(api_key="")
        speech.api_key = ""
        with self.assertRaises(SpeechFailure):
            asyncio.run(speech.synthesize("Hello"))


if __name__ == "__main__":
    unittest.main()

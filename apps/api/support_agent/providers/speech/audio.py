from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")


def converted_path_for(input_path: str) -> str:
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}_converted.mp3"))


async def convert_to_mp3(input_path: str) -> str:
    """
    Re-encode an upload to 16 kHz mono 64k MP3 for the transcription API.

    Returns the converted file path, or ``input_path`` itself when ffmpeg is
    missing or fails; the caller then sends the original bytes as is.
    """
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Audio file not found: {input_path}")

    output_path = converted_path_for(input_path)
    try:
        proc = await asyncio.create_subprocess_exec(
            FFMPEG_BINARY,
            "-y",
            "-i",
            input_path,
            "-vn",
            "-ar",
            "16000",
            "-ac",
            "1",
            "-b:a",
            "64k",
            output_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()
    except OSError as exc:
        logger.warning(
            "audio_conversion_unavailable",
            extra={"input_path": input_path, "error": str(exc)},
        )
        return input_path

    if proc.returncode != 0 or not os.path.exists(output_path):
        logger.warning(
            "audio_conversion_failed",
            extra={
                "input_path": input_path,
                "returncode": proc.returncode,
                "stderr": (stderr or b"").decode("utf-8", errors="replace")[-500:],
            },
        )
        return input_path

    logger.info(
        "audio_converted",
        extra={
            "input_path": input_path,
            "output_path": output_path,
            "output_bytes": os.path.getsize(output_path),
        },
    )
    return output_path

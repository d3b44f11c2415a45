"""Speech services.

Transcription goes to a whisper.cpp-compatible server
(`POST /v1/audio/transcriptions`); synthesis goes to a Chatterbox-compatible
server (`POST /v1/audio/speech`) whose WAV output is converted to OGG/Opus
with ffmpeg, the format Telegram voice notes require.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Any

import httpx

from src.errors import SynthesisError, TranscriptionError

logger = logging.getLogger(__name__)

DEFAULT_WHISPER_URL = "http://localhost:8080"
DEFAULT_CHATTERBOX_URL = "http://localhost:4123"
DEFAULT_VOICE_NAME = "Michael"


class VoiceService:
    """Transcribes and synthesizes speech over local HTTP services.

    Args:
        whisper_url: Base URL of the transcription server.
        chatterbox_url: Base URL of the speech synthesis server.
        voice_name: Synthesis voice.
        ffmpeg_binary: ffmpeg executable used for WAV to OGG conversion.
        timeout: HTTP timeout in seconds.
        client: Pre-configured httpx client (useful for testing).
    """

    def __init__(
        self,
        whisper_url: str = DEFAULT_WHISPER_URL,
        chatterbox_url: str = DEFAULT_CHATTERBOX_URL,
        voice_name: str = DEFAULT_VOICE_NAME,
        ffmpeg_binary: str = "ffmpeg",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._whisper_url = whisper_url.rstrip("/")
        self._chatterbox_url = chatterbox_url.rstrip("/")
        self._voice_name = voice_name
        self._ffmpeg = ffmpeg_binary
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe OGG audio to text.

        Raises:
            TranscriptionError: If the server is unreachable or rejects the audio.
        """
        try:
            response = await self._client.post(
                f"{self._whisper_url}/v1/audio/transcriptions",
                files={"file": ("audio.ogg", audio, "audio/ogg")},
                data={"response_format": "json"},
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e
        except ValueError as e:
            raise TranscriptionError("Transcription failed: invalid JSON response") from e

        text = str(payload.get("text") or "").strip()
        logger.info("Transcribed %d bytes of audio to %d chars", len(audio), len(text))
        return text

    async def synthesize(self, text: str) -> bytes:
        """Synthesize text to OGG/Opus audio.

        Raises:
            SynthesisError: If synthesis or conversion fails.
        """
        try:
            response = await self._client.post(
                f"{self._chatterbox_url}/v1/audio/speech",
                json={"input": text, "voice": self._voice_name},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SynthesisError(f"TTS failed: {e}") from e

        return await self._wav_to_ogg(response.content)

    async def _wav_to_ogg(self, wav: bytes) -> bytes:
        with tempfile.TemporaryDirectory(prefix="tgclaude-tts-") as tmp:
            wav_path = Path(tmp) / "speech.wav"
            ogg_path = Path(tmp) / "speech.ogg"
            wav_path.write_bytes(wav)
            try:
                process = await asyncio.create_subprocess_exec(
                    self._ffmpeg,
                    "-i", str(wav_path),
                    "-c:a", "libopus",
                    "-y", str(ogg_path),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
                _, stderr = await process.communicate()
            except OSError as e:
                raise SynthesisError(f"TTS failed: could not run {self._ffmpeg}: {e}") from e

            if process.returncode != 0:
                detail = stderr.decode(errors="replace").strip().splitlines()[-1:] or [""]
                raise SynthesisError(
                    f"TTS failed: ffmpeg exited with {process.returncode} {detail[0]}".strip()
                )
            return ogg_path.read_bytes()

    async def is_available(self) -> dict[str, bool]:
        """Probe both servers. Returns {"stt": bool, "tts": bool}."""

        async def _check(url: str) -> bool:
            try:
                response = await self._client.get(url, timeout=2.0)
            except httpx.HTTPError:
                return False
            return response.is_success

        return {
            "stt": await _check(self._whisper_url),
            "tts": await _check(self._chatterbox_url),
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

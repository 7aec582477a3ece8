"""ElevenLabs TTS provider implementation."""

import asyncio
import os
import tempfile
import time
from pathlib import Path
from typing import Optional, Union
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
import structlog

from .base import TextToSpeech
from ...devices.base import AudioArtifact


logger = structlog.get_logger()


class ElevenLabsSynthesizer(TextToSpeech):
    """
    ElevenLabs TTS provider writing each reply to an MP3 file.
    """

    def __init__(
        self,
        voice_id: str = "pNInz6obpgDQGcFmaJgB",  # Adam voice
        model_id: str = "eleven_flash_v2_5",
        output_format: str = "mp3_22050_32",
        stability: float = 0.5,
        similarity_boost: float = 0.8,
        style: float = 0.0,
        speed: float = 1.0,
        use_speaker_boost: bool = True,
        timeout: float = 15.0,
        api_key: Optional[str] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ):
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.timeout = timeout
        self.api_key = api_key
        self.output_dir = Path(output_dir) if output_dir else Path(tempfile.gettempdir())

        self.voice_settings = VoiceSettings(
            stability=stability,
            similarity_boost=similarity_boost,
            style=style,
            use_speaker_boost=use_speaker_boost,
            speed=speed,
        )

        self.client: Optional[ElevenLabs] = None
        self.last_latency_ms: Optional[float] = None
        self.syntheses = 0

    def _get_client(self) -> ElevenLabs:
        if self.client is None:
            api_key = self.api_key or os.getenv("ELEVENLABS_API_KEY")
            if not api_key:
                raise ValueError("ELEVENLABS_API_KEY environment variable not set")
            self.client = ElevenLabs(api_key=api_key)
            logger.info("ElevenLabs client initialized", voice_id=self.voice_id)
        return self.client

    def _convert(self, text: str) -> bytes:
        audio = self._get_client().text_to_speech.convert(
            voice_id=self.voice_id,
            text=text,
            model_id=self.model_id,
            output_format=self.output_format,
            voice_settings=self.voice_settings,
        )

        # The SDK has returned bytes, a response object or a chunk iterator
        if hasattr(audio, "content"):
            return audio.content  # type: ignore[attr-defined]
        if isinstance(audio, (bytes, bytearray)):
            return bytes(audio)
        return b"".join(audio)

    def _write(self, audio_data: bytes) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=self.output_dir, prefix="cortex_tts_", suffix=".mp3", delete=False
        ) as f:
            f.write(audio_data)
            return Path(f.name)

    async def synthesize(self, text: str) -> AudioArtifact:
        if not text.strip():
            raise ValueError("Cannot synthesize empty text")

        logger.debug("Generating TTS audio", text_length=len(text))
        start_time = time.time()

        audio_data = await asyncio.wait_for(
            asyncio.to_thread(self._convert, text), timeout=self.timeout
        )
        if not audio_data:
            raise RuntimeError("ElevenLabs returned no audio")

        path = await asyncio.to_thread(self._write, audio_data)

        self.last_latency_ms = (time.time() - start_time) * 1000
        self.syntheses += 1
        logger.info(
            "TTS audio generated",
            bytes=len(audio_data),
            latency_ms=round(self.last_latency_ms, 1),
        )
        return AudioArtifact(path=path, format="mp3", temporary=True)

    def get_status(self) -> dict:
        return {
            "provider": "elevenlabs",
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "initialized": self.client is not None,
            "syntheses": self.syntheses,
            "last_latency_ms": self.last_latency_ms,
        }

"""Microphone capture with sounddevice, saved as WAV with soundfile."""

import asyncio
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import sounddevice as sd
import soundfile as sf
import structlog

from .base import AudioArtifact, AudioCaptureDevice


logger = structlog.get_logger()


class SoundDeviceRecorder(AudioCaptureDevice):
    """
    Records from the default input device into memory, then writes one WAV
    file per recording.

    Blocks arrive on the PortAudio callback thread and are collected under a
    lock; stop() concatenates them and writes the file off the event loop.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        dtype: str = "float32",
        output_dir: Optional[Union[str, Path]] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.dtype = dtype
        self.output_dir = Path(output_dir) if output_dir else None

        self.audio_stream: Optional[sd.InputStream] = None
        self.is_recording = False
        self._blocks: List[np.ndarray] = []
        self._lock = threading.Lock()

    def audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """sounddevice input callback."""
        if status:
            logger.warning("Audio callback status", status=str(status))

        # Convert to mono if needed
        if indata.ndim > 1 and indata.shape[1] > 1:
            audio_data = np.mean(indata, axis=1)
        else:
            audio_data = indata.flatten()

        with self._lock:
            self._blocks.append(audio_data.copy())

    async def request_permission(self) -> bool:
        try:
            default_input = await asyncio.to_thread(sd.query_devices, kind="input")
        except Exception as e:
            logger.error("Failed to query audio devices", error=str(e))
            return False

        if not default_input or default_input.get("max_input_channels", 0) < 1:
            logger.warning("No usable input device")
            return False

        logger.debug(
            "Audio device info",
            default_input=default_input.get("name"),
            sample_rate=default_input.get("default_samplerate"),
        )
        return True

    async def prepare(self) -> None:
        with self._lock:
            self._blocks = []

        self.audio_stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype=self.dtype,
            callback=self.audio_callback,
        )
        logger.debug("Audio stream created", sample_rate=self.sample_rate)

    async def start(self) -> None:
        if not self.audio_stream:
            await self.prepare()
        self.audio_stream.start()
        self.is_recording = True
        logger.info("Recording started")

    async def stop(self) -> Optional[AudioArtifact]:
        if self.audio_stream:
            try:
                self.audio_stream.stop()
                self.audio_stream.close()
            finally:
                self.audio_stream = None
        self.is_recording = False

        with self._lock:
            blocks, self._blocks = self._blocks, []

        if not blocks:
            logger.info("Recording stopped with no audio")
            return None

        audio = np.concatenate(blocks)
        if audio.size == 0:
            return None

        path = await asyncio.to_thread(self._write_wav, audio)
        duration_ms = int(len(audio) * 1000 / self.sample_rate)
        logger.info("Recording saved", path=str(path), duration_ms=duration_ms)
        return AudioArtifact(
            path=path, format="wav", duration_ms=duration_ms, temporary=True
        )

    def _write_wav(self, audio: np.ndarray) -> Path:
        with tempfile.NamedTemporaryFile(
            suffix=".wav",
            prefix="cortex_recording_",
            dir=self.output_dir,
            delete=False,
        ) as tmp_file:
            path = Path(tmp_file.name)
        sf.write(str(path), audio, self.sample_rate)
        return path

    def get_status(self) -> dict:
        with self._lock:
            blocks = len(self._blocks)
        return {
            "device": "sounddevice",
            "sample_rate": self.sample_rate,
            "channels": self.channels,
            "dtype": self.dtype,
            "is_recording": self.is_recording,
            "buffered_blocks": blocks,
        }

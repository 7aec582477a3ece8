"""WhisperKit STT provider that transcribes recorded files."""

import asyncio
import time
from typing import Optional
import structlog

from .base import SpeechToText
from ...devices.base import AudioArtifact


logger = structlog.get_logger()


class WhisperKitTranscriber(SpeechToText):
    """
    Runs `whisperkit-cli transcribe` on a finished recording.

    The CLI prints the transcript to stdout; a non-zero exit status or a
    timeout is reported as an exception.
    """

    SUPPORTED_FORMATS = [".mp3", ".wav", ".m4a", ".aac", ".flac", ".ogg"]

    def __init__(
        self,
        model: str = "large-v3_turbo",
        compute_units: str = "cpuAndNeuralEngine",
        whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli",
        timeout: float = 60.0,
        verbose: bool = False,
    ):
        self.model = model
        self.compute_units = compute_units
        self.whisperkit_path = whisperkit_path
        self.timeout = timeout
        self.verbose = verbose
        self.last_latency_ms: Optional[float] = None
        self.transcriptions = 0

    def build_command(self, artifact: AudioArtifact) -> list[str]:
        cmd = [
            self.whisperkit_path,
            "transcribe",
            "--audio-path",
            str(artifact.path),
            "--model",
            self.model,
            "--audio-encoder-compute-units",
            self.compute_units,
            "--text-decoder-compute-units",
            self.compute_units,
        ]
        if self.verbose:
            cmd.append("--verbose")
        return cmd

    async def transcribe(self, artifact: AudioArtifact) -> str:
        if not artifact.path.exists():
            raise FileNotFoundError(f"Audio file not found: {artifact.path}")
        if artifact.path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported audio format: {artifact.path.suffix}")

        cmd = self.build_command(artifact)
        logger.debug("Starting WhisperKit", audio_path=str(artifact.path))
        start_time = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise RuntimeError(f"WhisperKit CLI not found at {self.whisperkit_path}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise TimeoutError(f"WhisperKit timed out after {self.timeout}s")

        if process.returncode != 0:
            stderr_output = stderr.decode("utf-8", errors="replace").strip()
            logger.error(
                "WhisperKit process failed",
                return_code=process.returncode,
                stderr=stderr_output,
            )
            raise RuntimeError(
                f"WhisperKit failed with code {process.returncode}: {stderr_output}"
            )

        lines = stdout.decode("utf-8", errors="replace").splitlines()
        text = " ".join(line.strip() for line in lines if line.strip())

        self.last_latency_ms = (time.time() - start_time) * 1000
        self.transcriptions += 1
        logger.info(
            "Transcription completed",
            processing_time_ms=round(self.last_latency_ms, 1),
            text_length=len(text),
        )
        return text

    def get_status(self) -> dict:
        return {
            "provider": "whisperkit",
            "model": self.model,
            "compute_units": self.compute_units,
            "whisperkit_path": self.whisperkit_path,
            "transcriptions": self.transcriptions,
            "last_latency_ms": self.last_latency_ms,
        }

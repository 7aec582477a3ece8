"""Base interface for Speech-to-Text providers."""

from abc import ABC, abstractmethod

from ...devices.base import AudioArtifact


class SpeechToText(ABC):
    """Abstract base class for STT providers."""

    @abstractmethod
    async def transcribe(self, artifact: AudioArtifact) -> str:
        """
        Transcribe a recorded audio artifact.

        Args:
            artifact: The recording to transcribe

        Returns:
            The transcribed text (may be empty when nothing was said)
        """
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the STT provider."""
        pass

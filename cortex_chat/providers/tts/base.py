"""Base interface for Text-to-Speech providers."""

from abc import ABC, abstractmethod

from ...devices.base import AudioArtifact


class TextToSpeech(ABC):
    """Abstract base class for TTS providers."""

    @abstractmethod
    async def synthesize(self, text: str) -> AudioArtifact:
        """
        Convert text to a playable audio artifact.

        Args:
            text: The text to convert to speech

        Returns:
            The synthesized audio
        """
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the TTS provider."""
        pass

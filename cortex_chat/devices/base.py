"""Audio artifacts and the capture/playback device interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional


@dataclass(frozen=True)
class AudioArtifact:
    """Reference to recorded or synthesized audio on disk."""
    path: Path
    format: str = "wav"
    duration_ms: Optional[int] = None
    temporary: bool = False  # owned by the voice machine, removed after use


class AudioCaptureDevice(ABC):
    """Microphone capture."""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Return True when recording is allowed and an input device exists."""
        pass

    @abstractmethod
    async def prepare(self) -> None:
        """Allocate whatever the next recording needs."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Begin capturing audio."""
        pass

    @abstractmethod
    async def stop(self) -> Optional[AudioArtifact]:
        """Stop capturing. Returns None when nothing was recorded."""
        pass


class AudioPlaybackDevice(ABC):
    """Speaker playback with an end-of-playback notification."""

    @abstractmethod
    async def load(self, artifact: AudioArtifact) -> None:
        pass

    @abstractmethod
    async def play(self) -> None:
        pass

    @abstractmethod
    async def pause(self) -> None:
        pass

    @abstractmethod
    def on_playback_ended(self, callback: Callable[[], None]) -> None:
        """Register the callback fired when the loaded audio finishes."""
        pass

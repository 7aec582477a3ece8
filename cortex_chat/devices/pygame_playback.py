"""Speaker playback through pygame.mixer.music."""

import asyncio
from typing import Callable, List, Optional

import pygame
import structlog

from .base import AudioArtifact, AudioPlaybackDevice


logger = structlog.get_logger()


class PygamePlayer(AudioPlaybackDevice):
    """
    Plays one audio file at a time.

    pygame has no completion callback for music, so play() starts a task
    that polls get_busy() and fires the ended callbacks once the track
    stops on its own. pause() cancels the poller, so an interrupted track
    never reports as ended.
    """

    def __init__(self, poll_interval: float = 0.05):
        self.poll_interval = poll_interval
        self.is_playing = False
        self.current: Optional[AudioArtifact] = None
        self._callbacks: List[Callable[[], None]] = []
        self._poll_task: Optional[asyncio.Task] = None

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init() is None:
            pygame.mixer.pre_init(frequency=22050, size=-16, channels=2, buffer=1024)
            pygame.mixer.init()

    def on_playback_ended(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    async def load(self, artifact: AudioArtifact) -> None:
        self._cancel_poller()
        self._ensure_mixer()
        pygame.mixer.music.load(str(artifact.path))
        self.current = artifact
        logger.debug("Audio loaded", path=str(artifact.path), format=artifact.format)

    async def play(self) -> None:
        if self.current is None:
            raise RuntimeError("No audio loaded")

        pygame.mixer.music.play()
        self.is_playing = True
        self._cancel_poller()
        self._poll_task = asyncio.create_task(self._wait_for_end())

    async def pause(self) -> None:
        self._cancel_poller()
        if self.is_playing:
            pygame.mixer.music.pause()
            self.is_playing = False
            logger.debug("Audio playback paused")

    async def _wait_for_end(self) -> None:
        while pygame.mixer.music.get_busy():
            await asyncio.sleep(self.poll_interval)

        self.is_playing = False
        self._poll_task = None
        logger.debug("Audio playback completed")
        self._fire_ended()

    def _fire_ended(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception as e:
                logger.error("Playback ended callback error", error=str(e))

    def _cancel_poller(self) -> None:
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    async def close(self) -> None:
        await self.pause()
        if pygame.mixer.get_init() is not None:
            pygame.mixer.quit()

    def get_status(self) -> dict:
        return {
            "device": "pygame",
            "is_playing": self.is_playing,
            "loaded": str(self.current.path) if self.current else None,
            "mixer_initialized": pygame.mixer.get_init() is not None,
        }

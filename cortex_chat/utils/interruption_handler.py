"""Interruption and playback-completion coordination for voice turns."""

import threading
from typing import Optional
import structlog


logger = structlog.get_logger()


class InterruptionHandler:
    """
    Tracks a single playback so it finishes exactly once.

    Each playback gets a new generation number. Completion (either the
    playback-ended event or a user interruption) is accepted only for the
    current generation and only the first time, so duplicate or stale
    events from the playback device are ignored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._generation = 0
        self._finished = True
        self.is_interrupted = False

    def begin(self) -> int:
        """Start tracking a new playback and return its generation."""
        with self._lock:
            self._generation += 1
            self._finished = False
            self.is_interrupted = False
            return self._generation

    def finish(self, generation: Optional[int] = None) -> bool:
        """
        Mark the playback as finished.

        Returns True only for the first call on the current generation.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            if self._finished:
                return False
            self._finished = True
            return True

    def trigger_interruption(self) -> bool:
        """Interrupt the current playback. Returns False if nothing was active."""
        with self._lock:
            if self._finished:
                return False
            self._finished = True
            self.is_interrupted = True
            generation = self._generation

        logger.info("Interruption triggered", generation=generation)
        return True

    def is_interrupted_atomic(self) -> bool:
        """Check interruption state atomically."""
        with self._lock:
            return self.is_interrupted


"""
Voice interaction state machine.

ready --tap--> listening --tap--> ai-speaking --playback ended / tap--> ready

The listening -> ai-speaking tap runs a whole voice turn: stop capture,
transcribe, generate the reply through the session, synthesize it and
start playback. A tap while ai-speaking interrupts: playback stops and
whatever the in-flight turn produces afterwards is discarded (an
outstanding model call still completes and is recorded by the session).
"""

import os
import time
from enum import Enum
from typing import Callable, Optional
import structlog

from .session import ConversationSession
from ..devices.base import AudioArtifact, AudioCaptureDevice, AudioPlaybackDevice
from ..metrics.collector import MetricsCollector
from ..providers.stt.base import SpeechToText
from ..providers.tts.base import TextToSpeech
from ..utils.interruption_handler import InterruptionHandler


logger = structlog.get_logger()


class VoiceState(str, Enum):
    READY = "ready"
    LISTENING = "listening"
    AI_SPEAKING = "ai-speaking"


class VoiceEvent(str, Enum):
    """Outcome of the most recent microphone action, for the UI."""
    LISTENING = "listening"
    PERMISSION_DENIED = "permission-denied"
    CAPTURE_FAILED = "capture-failed"
    NO_AUDIO = "no-audio"
    EMPTY_TRANSCRIPT = "empty-transcript"
    TRANSCRIPTION_FALLBACK = "transcription-fallback"
    SYNTHESIS_FAILED = "synthesis-failed"
    PLAYBACK_FAILED = "playback-failed"
    SPEAKING = "speaking"
    PLAYBACK_ENDED = "playback-ended"
    INTERRUPTED = "interrupted"
    DROPPED = "dropped"


class VoiceStateMachine:
    """Coordinates capture, STT, the session, TTS and playback."""

    def __init__(
        self,
        session: ConversationSession,
        recorder: AudioCaptureDevice,
        player: AudioPlaybackDevice,
        stt: SpeechToText,
        tts: TextToSpeech,
        metrics: Optional[MetricsCollector] = None,
        on_state_change: Optional[Callable[[VoiceState], None]] = None,
    ):
        self.session = session
        self.recorder = recorder
        self.player = player
        self.stt = stt
        self.tts = tts
        self.metrics = metrics
        self.on_state_change = on_state_change

        self.state = VoiceState.READY
        self.pending_transcript = ""
        self.last_reply: Optional[str] = None
        self.reply_count = 0
        self.last_event: Optional[VoiceEvent] = None

        self._recording = False
        self._playback_loaded = False
        self._busy = False
        self._turn_id = 0
        self._current_audio: Optional[AudioArtifact] = None
        self._playback_generation = 0
        self.playback_guard = InterruptionHandler()
        self.player.on_playback_ended(self._handle_playback_ended)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_playing(self) -> bool:
        return self._playback_loaded

    def _set_state(self, state: VoiceState) -> None:
        if state == self.state:
            return
        previous = self.state
        self.state = state
        if previous != VoiceState.LISTENING or state != VoiceState.AI_SPEAKING:
            # Leaving a state that holds a transcript clears it
            self.pending_transcript = ""
        logger.debug("Voice state changed", previous=previous.value, state=state.value)
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                logger.error("State change callback error", error=str(e))

    def _is_stale(self, turn_id: int) -> bool:
        return turn_id != self._turn_id or self.state != VoiceState.AI_SPEAKING

    async def handle_microphone_action(self) -> VoiceState:
        """React to a microphone tap and return the resulting state."""
        if self.state == VoiceState.AI_SPEAKING:
            await self.interrupt()
            return self.state

        if self._busy:
            logger.warning("Dropped microphone action while busy", state=self.state.value)
            self.last_event = VoiceEvent.DROPPED
            return self.state

        self._busy = True
        try:
            if self.state == VoiceState.READY:
                await self._start_listening()
            elif self.state == VoiceState.LISTENING:
                await self._run_voice_turn()
        finally:
            self._busy = False
        return self.state

    async def _start_listening(self) -> None:
        try:
            granted = await self.recorder.request_permission()
        except Exception as e:
            logger.error("Permission request failed", error=str(e))
            granted = False

        if not granted:
            logger.warning("Recording permission denied")
            self.last_event = VoiceEvent.PERMISSION_DENIED
            return

        try:
            await self.recorder.prepare()
            await self.recorder.start()
        except Exception as e:
            logger.error("Failed to start recording", error=str(e))
            self._record_error("capture", str(e))
            self.last_event = VoiceEvent.CAPTURE_FAILED
            return

        self._recording = True
        self.last_event = VoiceEvent.LISTENING
        self._set_state(VoiceState.LISTENING)

    async def _stop_capture(self) -> Optional[AudioArtifact]:
        try:
            return await self.recorder.stop()
        except Exception as e:
            logger.error("Failed to stop recording", error=str(e))
            self._record_error("capture", str(e))
            return None
        finally:
            self._recording = False

    async def _run_voice_turn(self) -> None:
        recording = await self._stop_capture()
        if recording is None:
            logger.warning("No audio captured")
            self.last_event = VoiceEvent.NO_AUDIO
            self._set_state(VoiceState.READY)
            return

        self._turn_id += 1
        turn_id = self._turn_id
        self._set_state(VoiceState.AI_SPEAKING)

        try:
            start_time = time.time()
            transcript = await self.stt.transcribe(recording)
            self._record_latency("stt", start_time)
        except Exception as e:
            # Degraded mode: echo the recording back, no history change
            logger.error("Transcription failed, playing captured audio", error=str(e))
            self._record_error("stt", str(e))
            if self._is_stale(turn_id):
                self._discard(recording)
                return
            await self._start_playback(recording, VoiceEvent.TRANSCRIPTION_FALLBACK, turn_id)
            return

        self._discard(recording)
        if self._is_stale(turn_id):
            return

        if not transcript.strip():
            logger.info("Empty transcript, nothing to send")
            self.last_event = VoiceEvent.EMPTY_TRANSCRIPT
            self._set_state(VoiceState.READY)
            return

        self.pending_transcript = transcript
        logger.info("Transcribed user speech", text=transcript[:50])

        reply = await self.session.generate_response(transcript)
        self.last_reply = reply
        self.reply_count += 1
        if self._is_stale(turn_id):
            logger.debug("Discarding reply for interrupted turn")
            return

        try:
            start_time = time.time()
            speech = await self.tts.synthesize(reply)
            self._record_latency("tts", start_time)
        except Exception as e:
            logger.error("Speech synthesis failed", error=str(e))
            self._record_error("tts", str(e))
            if not self._is_stale(turn_id):
                self.last_event = VoiceEvent.SYNTHESIS_FAILED
                self._set_state(VoiceState.READY)
            return

        if self._is_stale(turn_id):
            self._discard(speech)
            return

        await self._start_playback(speech, VoiceEvent.SPEAKING, turn_id)

    async def _start_playback(
        self, artifact: AudioArtifact, event: VoiceEvent, turn_id: int
    ) -> bool:
        try:
            await self.player.load(artifact)
            if self._is_stale(turn_id):
                self._discard(artifact)
                return False
            self._playback_loaded = True
            self._current_audio = artifact
            self._playback_generation = self.playback_guard.begin()
            self.last_event = event
            await self.player.play()
        except Exception as e:
            logger.error("Failed to start playback", error=str(e))
            self._record_error("playback", str(e))
            self.playback_guard.finish()
            self._playback_loaded = False
            self._current_audio = None
            self._discard(artifact)
            self.last_event = VoiceEvent.PLAYBACK_FAILED
            self._set_state(VoiceState.READY)
            return False

        logger.debug("Playback started", path=str(artifact.path))
        return True

    def _handle_playback_ended(self) -> None:
        """Playback device callback. Duplicate deliveries are ignored."""
        if self.state != VoiceState.AI_SPEAKING:
            return
        if not self.playback_guard.finish(self._playback_generation):
            logger.debug("Ignoring duplicate playback-ended event")
            return

        self._playback_loaded = False
        self._release_audio()
        self.last_event = VoiceEvent.PLAYBACK_ENDED
        self._set_state(VoiceState.READY)

    async def interrupt(self) -> bool:
        """Stop playback and return to ready. Only valid while ai-speaking."""
        if self.state != VoiceState.AI_SPEAKING:
            return False

        self._turn_id += 1
        self.playback_guard.trigger_interruption()
        was_playing = self._playback_loaded
        self._playback_loaded = False
        self.last_event = VoiceEvent.INTERRUPTED
        self._set_state(VoiceState.READY)

        if was_playing:
            try:
                await self.player.pause()
            except Exception as e:
                logger.warning("Error stopping playback", error=str(e))
        self._release_audio()

        if self.metrics:
            self.metrics.record_interruption()
        logger.info("Voice turn interrupted")
        return True

    async def close(self) -> None:
        """Release the microphone and speaker, whatever the state."""
        if self._recording:
            self._discard(await self._stop_capture())
        if self.state == VoiceState.AI_SPEAKING:
            await self.interrupt()
        self._set_state(VoiceState.READY)

    def _release_audio(self) -> None:
        artifact, self._current_audio = self._current_audio, None
        self._discard(artifact)

    @staticmethod
    def _discard(artifact: Optional[AudioArtifact]) -> None:
        """Delete a temporary recording or reply once it is no longer needed."""
        if artifact is None or not artifact.temporary:
            return
        try:
            os.unlink(artifact.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove audio file", path=str(artifact.path), error=str(e))

    def _record_latency(self, kind: str, start_time: float) -> None:
        if self.metrics:
            self.metrics.record_latency(kind, (time.time() - start_time) * 1000)

    def _record_error(self, component: str, message: str) -> None:
        if self.metrics:
            self.metrics.record_error(component, message)

    def get_status(self) -> dict:
        return {
            "state": self.state.value,
            "recording": self._recording,
            "playing": self._playback_loaded,
            "interrupted": self.playback_guard.is_interrupted_atomic(),
            "busy": self._busy,
            "last_event": self.last_event.value if self.last_event else None,
            "pending_transcript": self.pending_transcript,
        }

"""
In-process fakes for the model, speech and audio device interfaces.

Used by the test suite and by the CLI's --mock mode so that chat and voice
flows run without network access or audio hardware.
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence

from cortex_chat.devices.base import AudioArtifact, AudioCaptureDevice, AudioPlaybackDevice
from cortex_chat.providers.llm import MODEL_CATALOG, ModelNames
from cortex_chat.providers.llm.base import InvocationHandle, ModelInfo
from cortex_chat.providers.registry import ProviderRegistry
from cortex_chat.providers.stt.base import SpeechToText
from cortex_chat.providers.tts.base import TextToSpeech
from cortex_chat.state.history import ConversationMessage, Role
from cortex_chat.tools import CALCULATOR_TOOL


MOCK_MODEL_INFO = ModelInfo(
    id="mock-echo",
    name="Mock Echo",
    description="Replies with the last user message",
    family="mock",
    model_name="mock-echo",
)


class EchoModel(InvocationHandle):
    """Replies "echo:<last user message>" and keeps every request it saw."""

    def __init__(self, info: ModelInfo = MOCK_MODEL_INFO, **kwargs):
        super().__init__(info)
        self.requests: List[List[ConversationMessage]] = []
        self.closed = False

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        self.requests.append(list(messages))
        last_user = next(
            (m.content for m in reversed(messages) if m.role == Role.USER), ""
        )
        return f"echo:{last_user}"

    @property
    def last_request(self) -> Optional[List[ConversationMessage]]:
        return self.requests[-1] if self.requests else None

    async def close(self) -> None:
        self.closed = True


class CalculatorModel(EchoModel):
    """Runs every user message through the calculator tool and replies with the result."""

    def __init__(self, info: ModelInfo = MOCK_MODEL_INFO, **kwargs):
        super().__init__(info)
        self.tools = (CALCULATOR_TOOL,)

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        self.requests.append(list(messages))
        self.last_tool_calls = []
        last_user = next(
            (m.content for m in reversed(messages) if m.role == Role.USER), ""
        )
        return self.call_tool("calculator", {"expression": last_user})


class FailingModel(InvocationHandle):
    """Raises on every call."""

    def __init__(self, info: ModelInfo = MOCK_MODEL_INFO, error: Exception = None, **kwargs):
        super().__init__(info)
        self.error = error or RuntimeError("mock model failure")
        self.calls = 0

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        self.calls += 1
        raise self.error


class GatedModel(EchoModel):
    """Echo model that blocks until release() is called."""

    def __init__(self, info: ModelInfo = MOCK_MODEL_INFO, **kwargs):
        super().__init__(info)
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self) -> None:
        self._gate.set()

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        self.started.set()
        await self._gate.wait()
        return await super().invoke(messages)


def build_mock_registry(model_factory=EchoModel) -> ProviderRegistry:
    """A registry with the real catalog, every entry backed by model_factory."""
    mock_registry = ProviderRegistry(default_model=ModelNames.DEFAULT)
    for info in MODEL_CATALOG:
        mock_registry.register_model(info, model_factory)
    return mock_registry


class FakeRecorder(AudioCaptureDevice):
    """Capture device with scripted permission, failures and result."""

    def __init__(
        self,
        permission: bool = True,
        artifact: Optional[AudioArtifact] = None,
        fail_start: bool = False,
    ):
        self.permission = permission
        self.artifact = artifact if artifact is not None else AudioArtifact(Path("mock_recording.wav"))
        self.fail_start = fail_start
        self.permission_requests = 0
        self.is_recording = False
        self.starts = 0
        self.stops = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permission

    async def prepare(self) -> None:
        pass

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("mock capture failure")
        self.starts += 1
        self.is_recording = True

    async def stop(self) -> Optional[AudioArtifact]:
        self.stops += 1
        self.is_recording = False
        return self.artifact


class FakeTranscriber(SpeechToText):
    """Returns a fixed transcript, or raises when given an error."""

    def __init__(self, transcript: str = "Hello, how are you today?", error: Exception = None):
        self.transcript = transcript
        self.error = error
        self.artifacts: List[AudioArtifact] = []

    async def transcribe(self, artifact: AudioArtifact) -> str:
        self.artifacts.append(artifact)
        if self.error:
            raise self.error
        return self.transcript

    def get_status(self) -> dict:
        return {"provider": "mock_stt", "transcriptions": len(self.artifacts)}


class FakeSynthesizer(TextToSpeech):
    """Pretends to synthesize speech; records the texts it was given."""

    def __init__(self, error: Exception = None, output_dir: Optional[Path] = None):
        self.error = error
        self.output_dir = Path(output_dir) if output_dir else None
        self.texts: List[str] = []

    async def synthesize(self, text: str) -> AudioArtifact:
        self.texts.append(text)
        if self.error:
            raise self.error
        if self.output_dir is None:
            return AudioArtifact(Path("mock_speech.mp3"), format="mp3")

        # Real temporary files let tests check they are cleaned up
        path = self.output_dir / f"mock_speech_{len(self.texts)}.mp3"
        path.write_bytes(b"ID3")
        return AudioArtifact(path, format="mp3", temporary=True)

    def get_status(self) -> dict:
        return {"provider": "mock_tts", "syntheses": len(self.texts)}


class FakePlayer(AudioPlaybackDevice):
    """
    Playback device driven by the test.

    Call fire_ended() to simulate the track finishing. With auto_end=True
    the track "finishes" as soon as play() is called.
    """

    def __init__(self, auto_end: bool = False, fail_play: bool = False):
        self.auto_end = auto_end
        self.fail_play = fail_play
        self.loaded: List[AudioArtifact] = []
        self.is_playing = False
        self.plays = 0
        self.pauses = 0
        self._callbacks = []

    def on_playback_ended(self, callback) -> None:
        self._callbacks.append(callback)

    async def load(self, artifact: AudioArtifact) -> None:
        self.loaded.append(artifact)

    async def play(self) -> None:
        if self.fail_play:
            raise RuntimeError("mock playback failure")
        self.plays += 1
        self.is_playing = True
        if self.auto_end:
            self.fire_ended()

    async def pause(self) -> None:
        self.pauses += 1
        self.is_playing = False

    def fire_ended(self) -> None:
        self.is_playing = False
        for callback in list(self._callbacks):
            callback()

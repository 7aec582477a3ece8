"""Tests for the model and speech provider adapters."""

import asyncio
import os
import pytest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

from cortex_chat.devices.base import AudioArtifact
from cortex_chat.providers.llm import MODEL_CATALOG, ModelNames
from cortex_chat.providers.llm.gemini import GeminiChatModel
from cortex_chat.providers.llm.groq import GroqChatModel
from cortex_chat.providers.stt.whisperkit import WhisperKitTranscriber
from cortex_chat.providers.tts.elevenlabs import ElevenLabsSynthesizer
from cortex_chat.state.history import ConversationMessage, Role
from cortex_chat.tools import DEFAULT_TOOLS


CATALOG = {info.id: info for info in MODEL_CATALOG}

MESSAGES = [
    ConversationMessage(Role.SYSTEM, "Be helpful."),
    ConversationMessage(Role.USER, "Hi", "2024-01-01T00:00:00+00:00"),
    ConversationMessage(Role.ASSISTANT, "Hello!", "2024-01-01T00:00:01+00:00"),
    ConversationMessage(Role.USER, "How are you?"),
]


def completion(content, tool_calls=None):
    return Mock(choices=[Mock(message=Mock(content=content, tool_calls=tool_calls))])


def tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


def gemini_response(text="", function_calls=()):
    parts = [SimpleNamespace(function_call=call) for call in function_calls]
    return SimpleNamespace(
        text=text, candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))]
    )


class TestGroqChatModel:
    """Groq adapter over the OpenAI-compatible client."""

    def setup_method(self):
        self.model = GroqChatModel(CATALOG[ModelNames.GROQ_LLM_70B], max_retries=3)

    def test_requires_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="GROQ_API_KEY"):
                asyncio.run(self.model.invoke(MESSAGES))

    @patch("cortex_chat.providers.llm.groq.AsyncOpenAI")
    def test_invoke_sends_role_content_pairs(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create = AsyncMock(return_value=completion("Fine, thanks."))

        with patch.dict(os.environ, {"GROQ_API_KEY": "test-key"}):
            reply = asyncio.run(self.model.invoke(MESSAGES))

        assert reply == "Fine, thanks."
        mock_openai.assert_called_once_with(
            api_key="test-key",
            base_url="https://api.groq.com/openai/v1",
            max_retries=3,
            timeout=30.0,
        )
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama-3.3-70b-versatile"
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be helpful."},
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello!"},
            {"role": "user", "content": "How are you?"},
        ]

    @patch("cortex_chat.providers.llm.groq.AsyncOpenAI")
    def test_empty_completion_raises(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create = AsyncMock(return_value=Mock(choices=[]))

        model = GroqChatModel(CATALOG[ModelNames.DEFAULT], api_key="test-key")
        with pytest.raises(RuntimeError, match="no choices"):
            asyncio.run(model.invoke(MESSAGES))

    @patch("cortex_chat.providers.llm.groq.AsyncOpenAI")
    def test_tool_call_result_is_sent_back(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create = AsyncMock(
            side_effect=[
                completion(None, [tool_call("call_1", "calculator", '{"expression": "2+2"}')]),
                completion("It is 4."),
            ]
        )

        model = GroqChatModel(
            CATALOG[ModelNames.DEFAULT], api_key="test-key", tools=DEFAULT_TOOLS
        )
        reply = asyncio.run(model.invoke(MESSAGES))

        assert reply == "It is 4."
        first, second = client.chat.completions.create.call_args_list
        assert first.kwargs["tools"][0]["function"]["name"] == "calculator"
        assert len(first.kwargs["messages"]) == 4
        followup = second.kwargs["messages"][4:]
        assert followup[0]["role"] == "assistant"
        assert followup[0]["tool_calls"][0]["id"] == "call_1"
        assert followup[1] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "2+2 = 4",
        }
        assert [call.result for call in model.last_tool_calls] == ["2+2 = 4"]

    @patch("cortex_chat.providers.llm.groq.AsyncOpenAI")
    def test_endless_tool_calls_raise(self, mock_openai):
        client = mock_openai.return_value
        client.chat.completions.create = AsyncMock(
            return_value=completion(
                None, [tool_call("call_1", "calculator", '{"expression": "1+1"}')]
            )
        )

        model = GroqChatModel(
            CATALOG[ModelNames.DEFAULT],
            api_key="test-key",
            tools=DEFAULT_TOOLS,
            max_tool_rounds=2,
        )
        with pytest.raises(RuntimeError, match="kept requesting tools"):
            asyncio.run(model.invoke(MESSAGES))
        assert client.chat.completions.create.await_count == 3

    @patch("cortex_chat.providers.llm.groq.AsyncOpenAI")
    def test_close_releases_client(self, mock_openai):
        client = mock_openai.return_value
        client.close = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=completion("ok"))

        model = GroqChatModel(CATALOG[ModelNames.DEFAULT], api_key="test-key")
        asyncio.run(model.invoke(MESSAGES))
        assert model.get_status()["initialized"] is True

        asyncio.run(model.close())
        client.close.assert_awaited_once()
        assert model.get_status()["initialized"] is False


class TestGeminiChatModel:
    """Gemini adapter."""

    def setup_method(self):
        self.model = GeminiChatModel(CATALOG[ModelNames.GEMINI_FLASH], api_key="test-key")

    def test_requires_api_key(self):
        model = GeminiChatModel(CATALOG[ModelNames.GEMINI_PRO])
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
                asyncio.run(model.invoke(MESSAGES))

    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_invoke_maps_roles(self, mock_genai):
        generative_model = mock_genai.GenerativeModel.return_value
        generative_model.generate_content_async = AsyncMock(return_value=gemini_response("Great!"))

        reply = asyncio.run(self.model.invoke(MESSAGES))

        assert reply == "Great!"
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        mock_genai.GenerativeModel.assert_called_once_with(
            model_name="gemini-2.5-flash-lite", system_instruction="Be helpful."
        )
        contents = generative_model.generate_content_async.call_args.args[0]
        assert contents == [
            {"role": "user", "parts": ["Hi"]},
            {"role": "model", "parts": ["Hello!"]},
            {"role": "user", "parts": ["How are you?"]},
        ]

    @patch("cortex_chat.providers.llm.gemini.asyncio.sleep", new_callable=AsyncMock)
    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_retries_then_succeeds(self, mock_genai, mock_sleep):
        generative_model = mock_genai.GenerativeModel.return_value
        generative_model.generate_content_async = AsyncMock(
            side_effect=[RuntimeError("503"), gemini_response("Recovered")]
        )

        assert asyncio.run(self.model.invoke(MESSAGES)) == "Recovered"
        assert generative_model.generate_content_async.await_count == 2
        mock_sleep.assert_awaited_once_with(1)

    @patch("cortex_chat.providers.llm.gemini.asyncio.sleep", new_callable=AsyncMock)
    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_gives_up_after_max_retries(self, mock_genai, mock_sleep):
        generative_model = mock_genai.GenerativeModel.return_value
        generative_model.generate_content_async = AsyncMock(side_effect=RuntimeError("503"))

        with pytest.raises(RuntimeError, match="503"):
            asyncio.run(self.model.invoke(MESSAGES))
        assert generative_model.generate_content_async.await_count == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1, 2]

    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_function_call_is_answered(self, mock_genai):
        generative_model = mock_genai.GenerativeModel.return_value
        call = SimpleNamespace(name="calculator", args={"expression": "6 / 4"})
        generative_model.generate_content_async = AsyncMock(
            side_effect=[gemini_response(function_calls=[call]), gemini_response("1.5")]
        )

        model = GeminiChatModel(
            CATALOG[ModelNames.GEMINI_FLASH], api_key="test-key", tools=DEFAULT_TOOLS
        )
        reply = asyncio.run(model.invoke(MESSAGES))

        assert reply == "1.5"
        declarations = mock_genai.GenerativeModel.call_args.kwargs["tools"][0]
        assert declarations["function_declarations"][0]["name"] == "calculator"
        mock_genai.protos.FunctionResponse.assert_called_once_with(
            name="calculator", response={"result": "6 / 4 = 1.5"}
        )
        contents = generative_model.generate_content_async.call_args.args[0]
        assert len(contents) == 5
        assert contents[-1]["role"] == "user"
        assert model.last_tool_calls[0].arguments == {"expression": "6 / 4"}

    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_empty_text_raises(self, mock_genai):
        generative_model = mock_genai.GenerativeModel.return_value
        generative_model.generate_content_async = AsyncMock(return_value=gemini_response(""))

        with pytest.raises(RuntimeError, match="empty response"):
            asyncio.run(self.model.invoke(MESSAGES))

    @patch("cortex_chat.providers.llm.gemini.asyncio.sleep", new_callable=AsyncMock)
    @patch("cortex_chat.providers.llm.gemini.genai")
    def test_zero_retries_means_one_attempt(self, mock_genai, mock_sleep):
        generative_model = mock_genai.GenerativeModel.return_value
        generative_model.generate_content_async = AsyncMock(side_effect=RuntimeError("503"))

        model = GeminiChatModel(
            CATALOG[ModelNames.GEMINI_FLASH], api_key="test-key", max_retries=0
        )
        with pytest.raises(RuntimeError, match="503"):
            asyncio.run(model.invoke(MESSAGES))
        assert generative_model.generate_content_async.await_count == 1
        mock_sleep.assert_not_awaited()


class TestWhisperKitTranscriber:
    """WhisperKit CLI adapter."""

    def setup_method(self):
        self.stt = WhisperKitTranscriber(whisperkit_path="/usr/local/bin/whisperkit-cli")

    def test_build_command(self, tmp_path):
        artifact = AudioArtifact(tmp_path / "clip.wav")
        cmd = self.stt.build_command(artifact)

        assert cmd[:4] == [
            "/usr/local/bin/whisperkit-cli",
            "transcribe",
            "--audio-path",
            str(tmp_path / "clip.wav"),
        ]
        assert "--model" in cmd
        assert "large-v3_turbo" in cmd

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            asyncio.run(self.stt.transcribe(AudioArtifact(tmp_path / "missing.wav")))

    def test_unsupported_format_raises(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not audio")
        with pytest.raises(ValueError, match="Unsupported"):
            asyncio.run(self.stt.transcribe(AudioArtifact(path)))

    def test_transcribe_joins_output_lines(self, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(b"RIFF")
        process = Mock(returncode=0)
        process.communicate = AsyncMock(return_value=(b"Hello there.\n\nHow are you?\n", b""))

        with patch(
            "cortex_chat.providers.stt.whisperkit.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            text = asyncio.run(self.stt.transcribe(AudioArtifact(path)))

        assert text == "Hello there. How are you?"
        assert self.stt.get_status()["transcriptions"] == 1

    def test_nonzero_exit_raises(self, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(b"RIFF")
        process = Mock(returncode=1)
        process.communicate = AsyncMock(return_value=(b"", b"model not found"))

        with patch(
            "cortex_chat.providers.stt.whisperkit.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=process),
        ):
            with pytest.raises(RuntimeError, match="model not found"):
                asyncio.run(self.stt.transcribe(AudioArtifact(path)))


class TestElevenLabsSynthesizer:
    """ElevenLabs adapter."""

    def test_requires_api_key(self, tmp_path):
        tts = ElevenLabsSynthesizer(output_dir=tmp_path)
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="ELEVENLABS_API_KEY"):
                asyncio.run(tts.synthesize("Hello"))

    def test_empty_text_raises(self, tmp_path):
        tts = ElevenLabsSynthesizer(api_key="test-key", output_dir=tmp_path)
        with pytest.raises(ValueError, match="empty"):
            asyncio.run(tts.synthesize("   "))

    @patch("cortex_chat.providers.tts.elevenlabs.ElevenLabs")
    def test_synthesize_writes_mp3(self, mock_elevenlabs, tmp_path):
        client = mock_elevenlabs.return_value
        client.text_to_speech.convert.return_value = iter([b"ID3", b"audio"])

        tts = ElevenLabsSynthesizer(voice_id="voice-1", api_key="test-key", output_dir=tmp_path)
        artifact = asyncio.run(tts.synthesize("Hello world"))

        assert artifact.format == "mp3"
        assert artifact.temporary is True
        assert artifact.path.parent == Path(tmp_path)
        assert artifact.path.read_bytes() == b"ID3audio"
        mock_elevenlabs.assert_called_once_with(api_key="test-key")
        kwargs = client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_id"] == "voice-1"
        assert kwargs["text"] == "Hello world"
        assert kwargs["model_id"] == "eleven_flash_v2_5"

    @patch("cortex_chat.providers.tts.elevenlabs.ElevenLabs")
    def test_no_audio_raises(self, mock_elevenlabs, tmp_path):
        mock_elevenlabs.return_value.text_to_speech.convert.return_value = iter([])

        tts = ElevenLabsSynthesizer(api_key="test-key", output_dir=tmp_path)
        with pytest.raises(RuntimeError, match="no audio"):
            asyncio.run(tts.synthesize("Hello"))

"""Tests for the model and prompt registries."""

import asyncio
import pytest

from cortex_chat.core.prompts import PromptRegistry, PromptNames, AVAILABLE_PROMPTS
from cortex_chat.providers import registry as global_registry
from cortex_chat.providers.llm import MODEL_CATALOG, ModelNames
from cortex_chat.providers.llm.gemini import GeminiChatModel
from cortex_chat.providers.llm.groq import GroqChatModel
from cortex_chat.providers.registry import ProviderRegistry
from cortex_chat.providers.stt.whisperkit import WhisperKitTranscriber
from cortex_chat.providers.tts.elevenlabs import ElevenLabsSynthesizer
from cortex_chat.storage.store import MemoryStore, CUSTOM_PROMPT_KEY
from mocks.providers import EchoModel, FakeTranscriber, build_mock_registry


class TestProviderRegistry:
    """Model resolution and speech provider lookup."""

    def setup_method(self):
        self.registry = build_mock_registry()

    def test_known_model_resolves_to_itself(self):
        handle = self.registry.resolve(ModelNames.GROQ_LLM_70B)
        assert handle.info.id == ModelNames.GROQ_LLM_70B

    def test_unknown_model_resolves_to_default(self):
        handle = self.registry.resolve("gpt-unknown")
        assert handle.info.id == ModelNames.DEFAULT
        assert self.registry.resolve_id("gpt-unknown") == ModelNames.DEFAULT

    def test_none_resolves_to_default(self):
        assert self.registry.resolve(None).info.id == ModelNames.DEFAULT

    def test_handles_are_cached(self):
        first = self.registry.resolve(ModelNames.GEMINI_PRO)
        assert self.registry.resolve(ModelNames.GEMINI_PRO) is first

    def test_no_default_raises(self):
        empty = ProviderRegistry(default_model="missing")
        with pytest.raises(ValueError):
            empty.resolve("anything")

    def test_config_getter_feeds_factory(self):
        seen = {}

        def factory(info, **kwargs):
            seen.update(kwargs)
            return EchoModel(info)

        registry = ProviderRegistry(default_model=MODEL_CATALOG[0].id)
        registry.register_model(MODEL_CATALOG[0], factory, lambda: {"temperature": 0.3})
        registry.resolve(MODEL_CATALOG[0].id)

        assert seen == {"temperature": 0.3}

    def test_list_models_keeps_catalog_order(self):
        ids = [info.id for info in self.registry.list_models()]
        assert ids == [info.id for info in MODEL_CATALOG]

    def test_unknown_speech_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown STT provider"):
            self.registry.get_stt_provider("nope")
        with pytest.raises(ValueError, match="Unknown TTS provider"):
            self.registry.get_tts_provider("nope")

    def test_speech_provider_kwargs_override_config(self):
        self.registry.register_stt_provider(
            "fake", FakeTranscriber, lambda: {"transcript": "from config"}
        )

        assert self.registry.get_stt_provider("fake").transcript == "from config"
        assert self.registry.get_stt_provider("fake", transcript="explicit").transcript == "explicit"

    def test_close_closes_built_handles(self):
        handle = self.registry.resolve(ModelNames.DEFAULT)
        asyncio.run(self.registry.close())
        assert handle.closed

    def test_global_registry_has_catalog_and_adapters(self):
        assert global_registry.default_model == ModelNames.DEFAULT
        for info in MODEL_CATALOG:
            assert global_registry.has_model(info.id)
        assert "whisperkit" in global_registry.list_stt_providers()
        assert "elevenlabs" in global_registry.list_tts_providers()

    def test_global_registry_builds_family_handles(self):
        registry = ProviderRegistry()
        from cortex_chat.providers import register_all_providers

        register_all_providers(registry)

        assert isinstance(registry.resolve(ModelNames.GROQ_LLM_8B), GroqChatModel)
        assert isinstance(registry.resolve(ModelNames.GEMINI_FLASH), GeminiChatModel)
        assert registry.resolve(ModelNames.GROQ_LLM_8B).get_status()["tools"] == ["calculator"]
        assert registry.resolve(ModelNames.GEMINI_FLASH).tools[0].name == "calculator"
        assert isinstance(registry.get_stt_provider("whisperkit"), WhisperKitTranscriber)
        assert isinstance(registry.get_tts_provider("elevenlabs"), ElevenLabsSynthesizer)


class TestPromptRegistry:
    """Prompt resolution."""

    def setup_method(self):
        self.store = MemoryStore()
        self.prompts = PromptRegistry(self.store, {PromptNames.SYSTEM_PROMPT: "Default text"})

    def test_default_prompt(self):
        assert asyncio.run(self.prompts.resolve(PromptNames.DEFAULT)) == "Default text"

    def test_unknown_prompt_falls_back_to_default(self):
        assert asyncio.run(self.prompts.resolve("pirate")) == "Default text"
        assert asyncio.run(self.prompts.resolve(None)) == "Default text"

    def test_empty_custom_prompt_resolves_to_empty_string(self):
        assert asyncio.run(self.prompts.resolve(PromptNames.CUSTOM_PROMPT)) == ""

    def test_custom_prompt_is_read_from_store(self):
        asyncio.run(self.prompts.set_custom_prompt("Answer in French."))

        assert self.store.data[CUSTOM_PROMPT_KEY] == "Answer in French."
        assert asyncio.run(self.prompts.resolve(PromptNames.CUSTOM_PROMPT)) == "Answer in French."

        # Edits are picked up on the next resolve
        self.store.data[CUSTOM_PROMPT_KEY] = "Answer in German."
        assert asyncio.run(self.prompts.resolve(PromptNames.CUSTOM_PROMPT)) == "Answer in German."

    def test_is_known(self):
        assert self.prompts.is_known(PromptNames.SYSTEM_PROMPT)
        assert self.prompts.is_known(PromptNames.CUSTOM_PROMPT)
        assert not self.prompts.is_known("pirate")

    def test_list_prompts(self):
        assert [p.id for p in self.prompts.list_prompts()] == [p.id for p in AVAILABLE_PROMPTS]

    def test_settings_supply_builtin_default(self):
        from cortex_chat.config.settings import settings

        prompts = PromptRegistry(MemoryStore())
        assert asyncio.run(prompts.resolve(PromptNames.DEFAULT)) == settings.prompts.default

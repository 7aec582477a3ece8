"""Provider registry for models and speech backends."""

from typing import Dict, Type, Callable, Any, Optional
import structlog

from .llm.base import InvocationHandle, ModelInfo
from .stt.base import SpeechToText
from .tts.base import TextToSpeech


logger = structlog.get_logger()


class ProviderRegistry:
    """
    Registry for model handles and speech providers.

    Models resolve leniently: an unknown id falls back to the default model
    instead of failing. Speech providers are looked up strictly by name.
    """

    def __init__(self, default_model: Optional[str] = None):
        self.default_model = default_model
        self._models: Dict[str, ModelInfo] = {}
        self._model_factories: Dict[str, Callable[..., InvocationHandle]] = {}
        self._handles: Dict[str, InvocationHandle] = {}
        self._stt_providers: Dict[str, Type[SpeechToText]] = {}
        self._tts_providers: Dict[str, Type[TextToSpeech]] = {}
        self._provider_configs: Dict[str, Callable[[], Dict[str, Any]]] = {}

    def register_model(
        self,
        info: ModelInfo,
        factory: Callable[..., InvocationHandle],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a model and the factory that builds its handle."""
        self._models[info.id] = info
        self._model_factories[info.id] = factory
        self._handles.pop(info.id, None)
        if config_getter:
            self._provider_configs[f"model:{info.id}"] = config_getter
        logger.debug("Registered model", model_id=info.id, family=info.family)

    def register_stt_provider(
        self,
        name: str,
        provider_class: Type[SpeechToText],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register an STT provider."""
        self._stt_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"stt:{name}"] = config_getter
        logger.debug(
            "Registered STT provider", name=name, class_name=provider_class.__name__
        )

    def register_tts_provider(
        self,
        name: str,
        provider_class: Type[TextToSpeech],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a TTS provider."""
        self._tts_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"tts:{name}"] = config_getter
        logger.debug(
            "Registered TTS provider", name=name, class_name=provider_class.__name__
        )

    def has_model(self, model_id: str) -> bool:
        return model_id in self._models

    def get_model_info(self, model_id: str) -> Optional[ModelInfo]:
        return self._models.get(model_id)

    def resolve_id(self, model_id: Optional[str]) -> str:
        """Map a possibly unknown id onto a registered one."""
        if model_id in self._models:
            return model_id

        if self.default_model not in self._models:
            raise ValueError(
                f"Unknown model '{model_id}' and no default model is registered"
            )

        logger.warning(
            "Unknown model, falling back to default",
            model_id=model_id,
            default_model=self.default_model,
        )
        return self.default_model

    def resolve(self, model_id: Optional[str]) -> InvocationHandle:
        """
        Get the invocation handle for a model.

        Unknown ids resolve to the default model. Handles are built on first
        use and cached.
        """
        resolved_id = self.resolve_id(model_id)

        handle = self._handles.get(resolved_id)
        if handle is None:
            kwargs: Dict[str, Any] = {}
            config_key = f"model:{resolved_id}"
            if config_key in self._provider_configs:
                kwargs.update(self._provider_configs[config_key]())

            handle = self._model_factories[resolved_id](self._models[resolved_id], **kwargs)
            self._handles[resolved_id] = handle

        return handle

    def get_stt_provider(self, name: str, **kwargs) -> SpeechToText:
        """Get an STT provider instance."""
        if name not in self._stt_providers:
            raise ValueError(f"Unknown STT provider: {name}")

        config_key = f"stt:{name}"
        if config_key in self._provider_configs:
            kwargs = {**self._provider_configs[config_key](), **kwargs}

        return self._stt_providers[name](**kwargs)

    def get_tts_provider(self, name: str, **kwargs) -> TextToSpeech:
        """Get a TTS provider instance."""
        if name not in self._tts_providers:
            raise ValueError(f"Unknown TTS provider: {name}")

        config_key = f"tts:{name}"
        if config_key in self._provider_configs:
            kwargs = {**self._provider_configs[config_key](), **kwargs}

        return self._tts_providers[name](**kwargs)

    def list_models(self) -> list[ModelInfo]:
        """List registered models in registration order."""
        return list(self._models.values())

    def list_stt_providers(self) -> list[str]:
        """List available STT providers."""
        return list(self._stt_providers.keys())

    def list_tts_providers(self) -> list[str]:
        """List available TTS providers."""
        return list(self._tts_providers.keys())

    async def close(self) -> None:
        """Close every handle that has been built."""
        for model_id, handle in list(self._handles.items()):
            try:
                await handle.close()
            except Exception as e:
                logger.warning("Error closing model handle", model_id=model_id, error=str(e))
        self._handles.clear()

    def clear(self) -> None:
        """Clear all registered providers."""
        self._models.clear()
        self._model_factories.clear()
        self._handles.clear()
        self._stt_providers.clear()
        self._tts_providers.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()

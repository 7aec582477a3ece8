"""Provider interfaces and implementations for models, STT, and TTS."""

from .registry import registry, ProviderRegistry


def register_all_providers(target: ProviderRegistry = None) -> ProviderRegistry:
    """Register every model and speech provider on a registry."""
    from . import llm, stt, tts

    target = target or registry
    llm.register_providers(target)
    stt.register_providers(target)
    tts.register_providers(target)
    return target


# Register providers after module initialization
register_all_providers()

__all__ = ["registry", "ProviderRegistry", "register_all_providers"]

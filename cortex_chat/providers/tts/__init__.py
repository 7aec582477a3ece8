"""Text-to-Speech providers."""


def register_providers(target=None):
    """Register all TTS providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .elevenlabs import ElevenLabsSynthesizer

    target = target or registry
    target.register_tts_provider(
        "elevenlabs",
        ElevenLabsSynthesizer,
        lambda: settings.get_provider_config("elevenlabs"),
    )

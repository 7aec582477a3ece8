"""Speech-to-Text providers."""


def register_providers(target=None):
    """Register all STT providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .whisperkit import WhisperKitTranscriber

    target = target or registry
    target.register_stt_provider(
        "whisperkit",
        WhisperKitTranscriber,
        lambda: settings.get_provider_config("whisperkit"),
    )

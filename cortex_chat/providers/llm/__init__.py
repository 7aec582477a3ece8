"""Remote model backends and the model catalog."""

from .base import InvocationHandle, ModelInfo


class ModelNames:
    """Selectable model ids."""

    DEFAULT = "llama-3.1-8b-instant"
    GROQ_LLM_8B = "groq-llama-3.1-8b-instant"
    GROQ_LLM_70B = "groq-llama-3.3-70b-versatile"
    GEMINI_PRO = "gemini-2.5-pro"
    GEMINI_FLASH = "gemini-2.5-flash-lite"


MODEL_CATALOG = [
    ModelInfo(
        id=ModelNames.DEFAULT,
        name="Llama 3.1 8B",
        description="Fast default model served by Groq",
        family="groq",
        model_name="llama-3.1-8b-instant",
    ),
    ModelInfo(
        id=ModelNames.GROQ_LLM_8B,
        name="Groq Llama 3.1 8B Instant",
        description="Low-latency replies for quick back-and-forth",
        family="groq",
        model_name="llama-3.1-8b-instant",
    ),
    ModelInfo(
        id=ModelNames.GROQ_LLM_70B,
        name="Groq Llama 3.3 70B Versatile",
        description="Larger Llama for more careful answers",
        family="groq",
        model_name="llama-3.3-70b-versatile",
    ),
    ModelInfo(
        id=ModelNames.GEMINI_PRO,
        name="Gemini 2.5 Pro",
        description="Google's most capable reasoning model",
        family="gemini",
        model_name="gemini-2.5-pro",
    ),
    ModelInfo(
        id=ModelNames.GEMINI_FLASH,
        name="Gemini 2.5 Flash Lite",
        description="Lightweight Gemini tuned for speed",
        family="gemini",
        model_name="gemini-2.5-flash-lite",
    ),
]


def register_providers(target=None):
    """Register all models in the catalog."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .groq import GroqChatModel
    from .gemini import GeminiChatModel
    from ...tools import DEFAULT_TOOLS

    target = target or registry
    factories = {"groq": GroqChatModel, "gemini": GeminiChatModel}

    def model_config(family: str) -> dict:
        config = settings.get_provider_config(family)
        config["tools"] = DEFAULT_TOOLS if settings.models.tools_enabled else ()
        return config

    for info in MODEL_CATALOG:
        family = info.family
        target.register_model(
            info,
            factories[family],
            lambda family=family: model_config(family),
        )

    if target.default_model is None:
        target.default_model = settings.models.default_model


__all__ = [
    "InvocationHandle",
    "ModelInfo",
    "ModelNames",
    "MODEL_CATALOG",
    "register_providers",
]

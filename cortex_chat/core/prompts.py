"""Prompt templates and the registry that resolves them."""

from dataclasses import dataclass
from typing import Dict, Optional
import structlog

from ..storage.store import KeyValueStore, CUSTOM_PROMPT_KEY


logger = structlog.get_logger()


class PromptNames:
    """Selectable prompt ids."""

    DEFAULT = "system_prompt"
    SYSTEM_PROMPT = "system_prompt"
    CUSTOM_PROMPT = "custom_prompt"


@dataclass(frozen=True)
class PromptInfo:
    """Catalog entry for a selectable prompt."""
    id: str
    name: str
    description: str


AVAILABLE_PROMPTS = [
    PromptInfo(
        id=PromptNames.SYSTEM_PROMPT,
        name="Cortex Assistant",
        description="Conversational helper that explains its reasoning",
    ),
    PromptInfo(
        id=PromptNames.CUSTOM_PROMPT,
        name="Custom Prompt",
        description="Your own instructions, edited in preferences",
    ),
]


class PromptRegistry:
    """
    Resolves prompt ids to prompt text.

    Built-in prompts are fixed strings. The custom slot is read from the
    store on every resolve and returned verbatim, so an unset custom prompt
    resolves to "" rather than the default text. Unknown ids resolve to the
    default prompt.
    """

    def __init__(self, store: KeyValueStore, builtin_prompts: Optional[Dict[str, str]] = None):
        self.store = store
        if builtin_prompts is None:
            from ..config.settings import settings

            builtin_prompts = {PromptNames.SYSTEM_PROMPT: settings.prompts.default}
        self.builtin_prompts = dict(builtin_prompts)

    def is_known(self, prompt_id: str) -> bool:
        return prompt_id == PromptNames.CUSTOM_PROMPT or prompt_id in self.builtin_prompts

    async def get_custom_prompt(self) -> str:
        """Stored custom prompt text, or "" when never set."""
        return await self.store.get(CUSTOM_PROMPT_KEY) or ""

    async def set_custom_prompt(self, text: str) -> None:
        await self.store.set(CUSTOM_PROMPT_KEY, text)
        logger.info("Custom prompt updated", length=len(text))

    async def resolve(self, prompt_id: Optional[str]) -> str:
        if prompt_id == PromptNames.CUSTOM_PROMPT:
            return await self.get_custom_prompt()

        if prompt_id in self.builtin_prompts:
            return self.builtin_prompts[prompt_id]

        logger.warning(
            "Unknown prompt, falling back to default",
            prompt_id=prompt_id,
            default_prompt=PromptNames.DEFAULT,
        )
        return self.builtin_prompts[PromptNames.DEFAULT]

    def list_prompts(self) -> list[PromptInfo]:
        return list(AVAILABLE_PROMPTS)

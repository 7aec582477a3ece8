"""
Conversation session: history, model/prompt selection and turn generation.
"""

import time
from typing import Any, Dict, List, Optional
import structlog

from .prompts import PromptRegistry, PromptNames
from ..metrics.collector import MetricsCollector
from ..providers.registry import ProviderRegistry
from ..state.history import ConversationHistory, ConversationMessage, Role
from ..storage.store import KeyValueStore, MODEL_KEY, PROMPT_KEY, HISTORY_KEY
from ..tools.base import ToolCall


logger = structlog.get_logger()


# Returned in place of an answer; callers never see an exception
ERROR_RESPONSE = "Error generating response"
NOT_INITIALIZED_RESPONSE = "Error: LLM is not initialized"
BUSY_RESPONSE = "Error: a response is already being generated"


DEFAULT_HISTORY_WINDOW = 20


class ConversationSession:
    """
    Owns the conversation history and the current model/prompt selection.

    Every turn sends [system prompt] + the most recent `history_window`
    history messages + the new user message. History only changes when a
    turn succeeds, and is persisted as a whole after each change. Public
    operations never raise: failures are logged and reported through the
    sentinel strings above.
    """

    def __init__(
        self,
        store: KeyValueStore,
        model_registry: ProviderRegistry,
        prompt_registry: PromptRegistry,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.model_registry = model_registry
        self.prompt_registry = prompt_registry
        self.history_window = history_window
        self.metrics = metrics

        self.model_id: Optional[str] = model_registry.default_model
        self.prompt_id: str = PromptNames.DEFAULT
        self.custom_prompt_text = ""
        self.history = ConversationHistory()
        self._busy = False

        # Most recent request and the tools it triggered, for debug output
        self.last_request: List[ConversationMessage] = []
        self.last_tool_calls: List[ToolCall] = []

    @property
    def is_busy(self) -> bool:
        return self._busy

    async def load_from_store(self) -> None:
        """Restore selections, custom prompt and history from the store."""
        saved_model = await self._read(MODEL_KEY)
        saved_prompt = await self._read(PROMPT_KEY)
        saved_history = await self._read(HISTORY_KEY)
        try:
            self.custom_prompt_text = await self.prompt_registry.get_custom_prompt()
        except Exception as e:
            logger.error("Error loading custom prompt", error=str(e))

        self.model_id = saved_model or self.model_registry.default_model
        self.prompt_id = saved_prompt or PromptNames.DEFAULT

        if saved_history:
            try:
                self.history = ConversationHistory.from_json(saved_history)
            except ValueError as e:
                logger.error("Error parsing conversation history", error=str(e))
                self.history = ConversationHistory()
        else:
            self.history = ConversationHistory()

        logger.info(
            "Session loaded",
            model=self.model_id,
            prompt=self.prompt_id,
            history_length=len(self.history),
        )

    def build_request(self, prompt_text: str, user_text: str) -> List[ConversationMessage]:
        """The exact message list sent to the model for one turn."""
        messages = [ConversationMessage(role=Role.SYSTEM, content=prompt_text)]
        messages.extend(
            ConversationMessage(role=message.role, content=message.content)
            for message in self.history.recent(self.history_window)
        )
        messages.append(ConversationMessage(role=Role.USER, content=user_text))
        return messages

    async def generate_response(self, user_text: str) -> str:
        """
        Run one turn and return the assistant text.

        Blank input returns "" without touching history. Overlapping calls
        are rejected with BUSY_RESPONSE.
        """
        if not user_text or not user_text.strip():
            return ""

        if self._busy:
            logger.warning("Rejected overlapping generate_response call")
            return BUSY_RESPONSE

        self._busy = True
        try:
            return await self._run_turn(user_text.strip())
        finally:
            self._busy = False

    async def _run_turn(self, user_text: str) -> str:
        try:
            handle = self.model_registry.resolve(self.model_id)
        except Exception as e:
            logger.error("LLM is not initialized", model=self.model_id, error=str(e))
            self._record_error(str(e))
            return NOT_INITIALIZED_RESPONSE

        try:
            prompt_text = await self.prompt_registry.resolve(self.prompt_id)
            messages = self.build_request(prompt_text, user_text)
            self.last_request = messages
            self.last_tool_calls = []

            start_time = time.time()
            assistant_text = await handle.invoke(messages)
            latency_ms = (time.time() - start_time) * 1000
            self.last_tool_calls = list(handle.last_tool_calls)
        except Exception as e:
            logger.error(
                "Error generating LLM response",
                model=self.model_id,
                error=str(e),
            )
            self._record_error(str(e))
            return ERROR_RESPONSE

        self.history.append(Role.USER, user_text)
        self.history.append(Role.ASSISTANT, assistant_text)
        await self._persist_history()

        if self.metrics:
            self.metrics.record_latency("model", latency_ms)
            self.metrics.record_turn()

        logger.info(
            "Generated response",
            model=handle.info.id,
            latency_ms=round(latency_ms, 1),
            history_length=len(self.history),
        )
        return assistant_text

    async def clear_conversation(self) -> None:
        """Drop the history in memory and in the store."""
        self.history.clear()
        try:
            await self.store.remove(HISTORY_KEY)
        except Exception as e:
            logger.error("Error clearing conversation history", error=str(e))
        logger.info("Conversation cleared")

    async def set_model(self, model_id: str) -> None:
        if not self.model_registry.has_model(model_id):
            logger.warning("Selected model is not registered", model=model_id)
        self.model_id = model_id
        await self._persist(MODEL_KEY, model_id)
        logger.info("Model selected", model=model_id)

    async def set_prompt(self, prompt_id: str) -> None:
        if not self.prompt_registry.is_known(prompt_id):
            logger.warning("Selected prompt is not registered", prompt=prompt_id)
        self.prompt_id = prompt_id
        await self._persist(PROMPT_KEY, prompt_id)
        logger.info("Prompt selected", prompt=prompt_id)

    async def set_custom_prompt(self, text: str) -> None:
        self.custom_prompt_text = text
        try:
            await self.prompt_registry.set_custom_prompt(text)
        except Exception as e:
            logger.error("Error saving custom prompt", error=str(e))

    def get_conversation_history(self) -> List[ConversationMessage]:
        return self.history.messages

    def get_status(self) -> Dict[str, Any]:
        return {
            "model": self.model_id,
            "prompt": self.prompt_id,
            "custom_prompt_set": bool(self.custom_prompt_text),
            "history_length": len(self.history),
            "history_window": self.history_window,
            "busy": self._busy,
        }

    async def _read(self, key: str) -> Optional[str]:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.error("Error loading data from store", key=key, error=str(e))
            return None

    async def _persist_history(self) -> None:
        try:
            await self.store.set(HISTORY_KEY, self.history.to_json())
        except Exception as e:
            logger.error("Error saving conversation history", error=str(e))

    async def _persist(self, key: str, value: str) -> None:
        try:
            await self.store.set(key, value)
        except Exception as e:
            logger.error("Error saving selection", key=key, error=str(e))

    def _record_error(self, message: str) -> None:
        if self.metrics:
            self.metrics.record_error("model", message)

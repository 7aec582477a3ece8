"""Base interface for remote model backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from ...state.history import ConversationMessage
from ...tools.base import Tool, ToolCall, run_tool


@dataclass(frozen=True)
class ModelInfo:
    """Catalog entry for a selectable model."""
    id: str
    name: str
    description: str
    family: str  # "groq" or "gemini"
    model_name: str  # identifier the provider API expects


class InvocationHandle(ABC):
    """
    A callable remote model.

    One implementation exists per backend family. Retries and tool calls, if
    any, happen inside the handle; callers see either the final assistant
    text or an exception.
    """

    def __init__(self, info: ModelInfo, tools: Optional[Sequence[Tool]] = None):
        self.info = info
        self.tools = tuple(tools or ())
        self.last_tool_calls: List[ToolCall] = []

    @abstractmethod
    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        """
        Send a full message list and return the assistant text.

        Args:
            messages: system prompt first, then history, then the new user turn

        Returns:
            The assistant's reply
        """
        pass

    def call_tool(self, name: str, arguments: Union[str, Dict[str, Any], None]) -> str:
        """Run a tool the model asked for and remember the call."""
        call = run_tool(self.tools, name, arguments)
        self.last_tool_calls.append(call)
        return call.result

    async def close(self) -> None:
        """Release network resources held by the handle."""
        return None

    def get_status(self) -> dict:
        """Get current status of the handle."""
        return {
            "model_id": self.info.id,
            "family": self.info.family,
            "model": self.info.model_name,
            "tools": [tool.name for tool in self.tools],
        }

"""Tools the models can call."""

from .base import Tool, ToolCall, run_tool
from .calculator import CALCULATOR_TOOL, calculate


DEFAULT_TOOLS = (CALCULATOR_TOOL,)

__all__ = [
    "Tool",
    "ToolCall",
    "run_tool",
    "calculate",
    "CALCULATOR_TOOL",
    "DEFAULT_TOOLS",
]

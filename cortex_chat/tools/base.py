"""Function tools a model may call while producing a reply."""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Sequence, Union
import structlog


logger = structlog.get_logger()


@dataclass(frozen=True)
class Tool:
    """A named function with a JSON Schema for its keyword arguments."""
    name: str
    description: str
    parameters: Dict[str, Any]
    func: Callable[..., str]

    def to_openai(self) -> Dict[str, Any]:
        """Chat completions `tools=` entry."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_function_declaration(self) -> Dict[str, Any]:
        """Gemini function declaration."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass
class ToolCall:
    """One executed tool call, kept for debugging output."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    result: str = ""


def run_tool(
    tools: Sequence[Tool], name: str, arguments: Union[str, Dict[str, Any], None]
) -> ToolCall:
    """
    Execute a tool requested by a model.

    Problems are reported back as an "Error: ..." result for the model to
    read rather than raised.
    """
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except json.JSONDecodeError as e:
            logger.warning("Invalid tool arguments", tool=name, error=str(e))
            return ToolCall(name, {}, f"Error: Invalid JSON in tool arguments. {e}")
    arguments = arguments or {}
    if not isinstance(arguments, dict):
        return ToolCall(name, {}, "Error: Tool arguments must be a JSON object.")

    tool = next((t for t in tools if t.name == name), None)
    if tool is None:
        logger.warning("Model requested an unknown tool", tool=name)
        return ToolCall(name, arguments, f"Error: Unknown tool {name}")

    try:
        result = str(tool.func(**arguments))
    except Exception as e:
        logger.error("Tool execution failed", tool=name, error=str(e))
        result = f"Error: {name} failed. {e}"

    logger.info("Tool executed", tool=name, result=result[:80])
    return ToolCall(name, arguments, result)

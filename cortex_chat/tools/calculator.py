"""
Arithmetic calculator tool.

The expression is first stripped of everything except digits, the four
operators, parentheses, dots and whitespace, then parsed with `ast` and
evaluated by walking the tree. Only numeric literals, + - * / and unary
signs are accepted, so nothing in the input can execute code.
"""

import ast
import math
import operator
import re

from .base import Tool


_DISALLOWED = re.compile(r"[^0-9+\-*/().\s]")

MAX_EXPRESSION_LENGTH = 256

INVALID_EXPRESSION = (
    "Error: Invalid expression. Please provide a valid mathematical expression."
)
INVALID_RESULT = "Error: Invalid calculation result."

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate(node: ast.AST):
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        return _BINARY_OPERATORS[type(node.op)](
            _evaluate(node.left), _evaluate(node.right)
        )
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"unsupported syntax {type(node).__name__}")


def _format_number(value) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


def calculate(expression: str) -> str:
    """Evaluate an arithmetic expression, returning "expression = result"."""
    sanitized = _DISALLOWED.sub("", expression or "").strip()
    if not sanitized or len(sanitized) > MAX_EXPRESSION_LENGTH:
        return INVALID_EXPRESSION

    try:
        result = _evaluate(ast.parse(sanitized, mode="eval"))
    except ZeroDivisionError:
        return INVALID_RESULT
    except (SyntaxError, ValueError, RecursionError, OverflowError) as e:
        return f"Error: Invalid mathematical expression. {e}"

    if isinstance(result, float) and not math.isfinite(result):
        return INVALID_RESULT

    return f"{expression} = {_format_number(result)}"


CALCULATOR_TOOL = Tool(
    name="calculator",
    description=(
        "Perform mathematical calculations and solve arithmetic expressions. "
        "Supports +, -, *, /, parentheses, decimal numbers and negative numbers. "
        'Returns "expression = result" or an error message. '
        'Examples: "2 + 3 * 4", "(10 - 5) / 2", "3.14 * 2".'
    ),
    parameters={
        "type": "object",
        "properties": {
            "expression": {
                "type": "string",
                "description": "The mathematical expression to calculate",
            }
        },
        "required": ["expression"],
    },
    func=calculate,
)

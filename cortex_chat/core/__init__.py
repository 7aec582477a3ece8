"""Conversation core: prompts, the chat session and the voice state machine."""

from .prompts import PromptRegistry, PromptNames, PromptInfo, AVAILABLE_PROMPTS
from .session import (
    ConversationSession,
    ERROR_RESPONSE,
    NOT_INITIALIZED_RESPONSE,
    BUSY_RESPONSE,
)
from .voice import VoiceStateMachine, VoiceState, VoiceEvent

__all__ = [
    "PromptRegistry",
    "PromptNames",
    "PromptInfo",
    "AVAILABLE_PROMPTS",
    "ConversationSession",
    "ERROR_RESPONSE",
    "NOT_INITIALIZED_RESPONSE",
    "BUSY_RESPONSE",
    "VoiceStateMachine",
    "VoiceState",
    "VoiceEvent",
]

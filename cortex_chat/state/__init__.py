"""Conversation state."""

from .history import ConversationHistory, ConversationMessage, Role

__all__ = ["ConversationHistory", "ConversationMessage", "Role"]

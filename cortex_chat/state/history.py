"""Conversation messages and the ordered history that owns them."""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
import structlog


logger = structlog.get_logger()


class Role(str, Enum):
    """Message author roles understood by every model backend."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    """A single message. Timestamps are assigned by the history, not the caller."""

    role: Role
    content: str
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for serialization."""
        data = {"role": self.role.value, "content": self.content}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    def to_request(self) -> Dict[str, str]:
        """The role/content pair sent to a model backend."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationMessage":
        """Create message from dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Message must be an object, got {type(data).__name__}")
        content = data["content"]
        if not isinstance(content, str):
            raise ValueError("Message content must be a string")
        timestamp = data.get("timestamp")
        if timestamp is not None and not isinstance(timestamp, str):
            raise ValueError("Message timestamp must be a string")
        return cls(role=Role(data["role"]), content=content, timestamp=timestamp)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationHistory:
    """
    Ordered, append-only list of conversation messages.

    Insertion order is chronological order and timestamps are strictly
    increasing: if the clock has not advanced past the last message, the new
    timestamp is bumped one microsecond past it.
    """

    def __init__(self, messages: Optional[List[ConversationMessage]] = None):
        self._messages: List[ConversationMessage] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(list(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    @property
    def messages(self) -> List[ConversationMessage]:
        return list(self._messages)

    def _next_timestamp(self) -> str:
        now = _now()
        if self._messages and self._messages[-1].timestamp:
            try:
                last = datetime.fromisoformat(self._messages[-1].timestamp)
                if last.tzinfo is None:
                    last = last.replace(tzinfo=timezone.utc)
                if now <= last:
                    now = last + timedelta(microseconds=1)
            except (TypeError, ValueError):
                pass
        return now.isoformat()

    def append(self, role: Role, content: str) -> ConversationMessage:
        """Append a message, stamping it with the current time."""
        message = ConversationMessage(
            role=role, content=content, timestamp=self._next_timestamp()
        )
        self._messages.append(message)
        return message

    def recent(self, limit: int) -> List[ConversationMessage]:
        """The last `limit` messages, oldest first."""
        if limit <= 0:
            return []
        return self._messages[-limit:]

    def clear(self) -> None:
        self._messages.clear()

    def to_json(self) -> str:
        """Serialize the whole history for the store."""
        return json.dumps(
            [message.to_dict() for message in self._messages], ensure_ascii=False
        )

    @classmethod
    def from_json(cls, raw: str) -> "ConversationHistory":
        """
        Parse a stored history.

        Raises ValueError when the payload is not a list of well-formed
        messages; the caller decides how to recover.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"History is not valid JSON: {e}") from e

        if not isinstance(data, list):
            raise ValueError("History must be a JSON array")

        try:
            messages = [ConversationMessage.from_dict(item) for item in data]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed history entry: {e}") from e

        # The system prompt is prepended per request and never stored
        if any(message.role == Role.SYSTEM for message in messages):
            raise ValueError("History must not contain system messages")

        return cls(messages)

"""Concrete implementations for the message store."""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

from rich.markup import escape

from .errors import HistoryCorrupted
from .models import (
    ASSISTANT_ROLE,
    ERROR_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    ChatMessage,
    ToolCall,
)

FIRST_KEY = 1

# Overhead per message for the role label and formatting, in characters.
MESSAGE_OVERHEAD = 10

ROLE_COLORS = {
    USER_ROLE: "green",
    ASSISTANT_ROLE: "yellow",
    SYSTEM_ROLE: "blue",
    ERROR_ROLE: "red",
}


class Store(ABC):
    """Interface for the in-session conversation log."""

    @abstractmethod
    def append(
        self, role: str, content: str, tool_calls: Optional[List[ToolCall]] = None
    ) -> int:
        """Stores a new message and returns its key."""
        pass

    @abstractmethod
    def sendable_messages(self) -> List[ChatMessage]:
        """Returns the history that may be sent to the backend, in order."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forgets every message and restarts key numbering."""
        pass

    @abstractmethod
    def estimate_tokens(self) -> int:
        """Returns a cheap, approximate token count for the whole log."""
        pass

    @abstractmethod
    def styled_render(self) -> List[str]:
        """Returns one markup line per message, ready for display."""
        pass


class InMemory(Store):
    """Ordered, integer-keyed message log held in a dictionary.

    Keys are assigned at insertion time starting at 1 and are never reused
    until :meth:`clear` is called, so key order is conversation order.
    """

    def __init__(self):
        self._messages: Dict[int, ChatMessage] = {}
        self._next_key = FIRST_KEY

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ChatMessage]:
        for key in self._ordered_keys():
            yield self._messages[key]

    def get(self, key: int) -> ChatMessage:
        return self._messages[key]

    def append(
        self, role: str, content: str, tool_calls: Optional[List[ToolCall]] = None
    ) -> int:
        message = ChatMessage(role=role, content=content, tool_calls=tool_calls)
        key = self._next_key
        self._messages[key] = message
        self._next_key += 1
        return key

    def sendable_messages(self) -> List[ChatMessage]:
        return [msg for msg in self if msg.role != ERROR_ROLE]

    def clear(self) -> None:
        self._messages = {}
        self._next_key = FIRST_KEY

    def estimate_tokens(self) -> int:
        total_chars = 0
        for msg in self._messages.values():
            total_chars += len(msg.content)
            total_chars += len(msg.role) + MESSAGE_OVERHEAD
        # Roughly four characters per token for English text
        return total_chars // 4

    def styled_render(self) -> List[str]:
        lines = []
        messages = list(self)
        for i, msg in enumerate(messages):
            color = ROLE_COLORS.get(msg.role, "default")
            label = msg.role.capitalize()
            lines.append(f"[{color}]{label}[/{color}]: {escape(msg.content)}")

            is_last = i == len(messages) - 1
            if msg.role == ASSISTANT_ROLE and not is_last:
                if messages[i + 1].role == USER_ROLE:
                    lines.append("")
        return lines

    def render(self) -> str:
        return "\n".join(self.styled_render())

    def _ordered_keys(self) -> List[int]:
        keys = list(self._messages)
        for key in keys:
            if type(key) is not int:
                raise HistoryCorrupted(f"history key {key!r} is not an integer")
        return sorted(keys)

"""
Defines the core Pydantic data models for the application.

These models are the data contract between the store, the backend client,
the tool registry and the engine. Field names follow the Ollama chat API
where the two overlap.
"""

import enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
ERROR_ROLE = "error"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE, ERROR_ROLE]


class SessionState(str, enum.Enum):
    """Lifecycle states of a chat session."""

    IDLE = "idle"
    AWAITING_MODEL_SELECTION = "awaiting_model_selection"
    READY = "ready"
    AWAITING_COMPLETION = "awaiting_completion"
    PROCESSING_TOOL_CALLS = "processing_tool_calls"


# --- Models ---
class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    function_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class ToolResult(BaseModel):
    """Outcome of executing a single tool call."""

    function_name: str
    content: str
    is_error: bool = False


class ChatMessage(BaseModel):
    """Represents a single message within a conversation.

    Messages are frozen: history is edited by appending, never in place.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = None

    def to_payload(self) -> Dict[str, str]:
        """The mapping sent upstream in a chat request."""
        return {"role": self.role, "content": self.content}


class Answer(BaseModel):
    """A normalized reply from the chat backend."""

    message: ChatMessage
    done: bool = True
    model: str = ""

    @property
    def tool_calls(self) -> List[ToolCall]:
        return list(self.message.tool_calls or [])


class ChatRequest(BaseModel):
    """Everything needed for one chat completion call."""

    model: str
    messages: List[ChatMessage]
    options: Dict[str, Any] = Field(default_factory=dict)
    tools: List[Dict[str, Any]] = Field(default_factory=list)
    format: Optional[str] = None

    def message_payloads(self) -> List[Dict[str, str]]:
        return [msg.to_payload() for msg in self.messages]


class TurnResult(BaseModel):
    """What a submitted turn did to the session."""

    state: SessionState
    keys: List[int] = Field(default_factory=list)
    answer: Optional[Answer] = None
    error: Optional[str] = None

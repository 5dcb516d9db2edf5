"""Exception taxonomy for llamachat.

Everything except :class:`HistoryCorrupted` is recovered locally, either as
an ``error`` message in the conversation or as a degraded return value.
"""


class LlamachatError(Exception):
    """Base class for all llamachat errors."""


class BackendFailure(LlamachatError):
    """The chat backend could not serve a request."""


class BackendUnreachable(BackendFailure):
    """Transport-level failure: DNS, refused connection or timeout."""


class BackendError(BackendFailure):
    """The backend answered with a failure status or a malformed payload."""

    def __init__(self, message: str, status_code: int = -1):
        super().__init__(message)
        self.status_code = status_code


class ModelNotFound(LlamachatError):
    def __init__(self, name: str):
        super().__init__(f"model not found: {name}")
        self.name = name


class ToolFailure(LlamachatError):
    """A single tool call could not be completed."""


class ToolNotFound(ToolFailure):
    def __init__(self, name: str):
        super().__init__(f"tool not found: {name}")
        self.name = name


class ToolInvocationFailure(ToolFailure):
    pass


class RetrievalFailure(LlamachatError):
    """The document index could not be queried or its reply parsed."""


class SessionNotReady(LlamachatError):
    """A turn was submitted while the session had no usable backend."""


class HistoryCorrupted(LlamachatError, RuntimeError):
    """History key bookkeeping is broken. This is a bug, not a user error."""

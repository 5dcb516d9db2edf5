"""Turn orchestration: from user input to stored messages."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .errors import (
    BackendFailure,
    BackendUnreachable,
    HistoryCorrupted,
    LlamachatError,
    SessionNotReady,
)
from .models import (
    ASSISTANT_ROLE,
    ERROR_ROLE,
    SYSTEM_ROLE,
    USER_ROLE,
    Answer,
    ChatMessage,
    ChatRequest,
    SessionState,
    TurnResult,
)

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = {
    "temperature": 0.5,
    "repeat_last_n": 2,
    "repeat_penalty": 2.0,
}
# Tool selection should be deterministic.
TOOL_TEMPERATURE = 0.0


class Engine(ABC):
    """Interface for turn orchestration.

    The engine is bound to a session (``app``) that owns the store, the
    model catalog, the tools and the retriever. Binding may happen after
    construction.
    """

    def __init__(self, app: Any = None):
        self.app = app

    @abstractmethod
    def handle_message(self, user_input: str) -> TurnResult:
        pass

    async def handle_message_async(self, user_input: str) -> TurnResult:
        """Runs a turn without blocking the event loop."""
        return await asyncio.to_thread(self.handle_message, user_input)


class Synchronous(Engine):
    """Runs a turn as a fixed sequence of phases.

    A turn sends history plus the new message once. Tool calls in the reply
    are executed and their results recorded as messages; they are not sent
    back to the model for a second completion.

    Only :meth:`augment` and :meth:`call_backend` do network I/O and touch no
    session state, so :meth:`handle_message_async` runs them in a thread and
    everything that changes the store on the caller's loop.
    """

    def handle_message(self, user_input: str) -> TurnResult:
        text = self.start_turn(user_input)
        if not text:
            return TurnResult(state=self.app.state)

        keys: List[int] = []
        try:
            text = self.augment(text)
            request, keys = self.open_request(text)
            try:
                answer = self.call_backend(request)
            except BackendFailure as exc:
                return self.fail_turn(keys, exc)
            return self.finish_turn(answer, keys)
        except HistoryCorrupted:
            self.app.state = SessionState.READY
            raise
        except Exception as exc:
            logger.exception("Turn failed unexpectedly")
            return self.fail_turn(keys, exc)

    async def handle_message_async(self, user_input: str) -> TurnResult:
        text = self.start_turn(user_input)
        if not text:
            return TurnResult(state=self.app.state)

        keys: List[int] = []
        try:
            text = await asyncio.to_thread(self.augment, text)
            request, keys = self.open_request(text)
            try:
                answer = await asyncio.to_thread(self.call_backend, request)
            except BackendFailure as exc:
                return self.fail_turn(keys, exc)
            return self.finish_turn(answer, keys)
        except HistoryCorrupted:
            self.app.state = SessionState.READY
            raise
        except Exception as exc:
            logger.exception("Turn failed unexpectedly")
            return self.fail_turn(keys, exc)

    # --- Phases ---

    def start_turn(self, user_input: str) -> str:
        """Claims the session for a turn. Returns "" for blank input."""
        app = self.app
        if app.state != SessionState.READY:
            raise SessionNotReady(f"cannot send a message while {app.state.value}")

        text = (user_input or "").strip()
        if text:
            app.state = SessionState.AWAITING_COMPLETION
        return text

    def augment(self, text: str) -> str:
        if self.app.rag_enabled:
            return self.app.retrieval.augment(text)
        return text

    def open_request(self, text: str) -> Tuple[ChatRequest, List[int]]:
        """Builds the request, then stores the user message."""
        request = self._build_request(text)
        self._before_llm_call(request)
        keys = [self.app.store.append(USER_ROLE, text)]
        return request, keys

    def call_backend(self, request: ChatRequest) -> Answer:
        llm = self.app.llm
        response = llm.generate_response(
            request.message_payloads(), request.model, **self._request_kwargs(request)
        )
        return llm.create_answer(response, model=request.model)

    def finish_turn(self, answer: Answer, keys: List[int]) -> TurnResult:
        app = self.app
        self._after_llm_call(answer)
        self._before_commit(answer)
        if answer.tool_calls:
            app.state = SessionState.PROCESSING_TOOL_CALLS
            keys.extend(self._process_tool_calls(answer))
        elif answer.message.content:
            keys.append(app.store.append(ASSISTANT_ROLE, answer.message.content))
        else:
            logger.warning("Backend returned an empty answer")

        app.state = SessionState.READY
        app.update_usage()
        return TurnResult(state=app.state, keys=keys, answer=answer)

    def fail_turn(self, keys: List[int], exc: Exception) -> TurnResult:
        """Records ``exc`` as an error message and releases the session."""
        app = self.app
        if isinstance(exc, LlamachatError):
            logger.warning("Chat request failed: %s", exc)
            error = str(exc)
        else:
            error = f"unexpected error: {type(exc).__name__}: {exc}"
        keys.append(app.store.append(ERROR_ROLE, error))

        if isinstance(exc, BackendUnreachable):
            app.state = SessionState.AWAITING_MODEL_SELECTION
        else:
            app.state = SessionState.READY
        app.update_usage()
        return TurnResult(state=app.state, keys=keys, error=error)


    def _build_request(self, text: str) -> ChatRequest:
        app = self.app
        messages: List[ChatMessage] = app.store.sendable_messages()
        messages.append(ChatMessage(role=USER_ROLE, content=text))

        options = dict(DEFAULT_OPTIONS)
        tools: List[Dict[str, Any]] = []
        response_format: Optional[str] = None
        if app.tools_enabled:
            options["temperature"] = TOOL_TEMPERATURE
            tools = app.active_tools()
            response_format = app.settings.tool_response_format

        return ChatRequest(
            model=app.catalog.current_model,
            messages=messages,
            options=options,
            tools=tools,
            format=response_format,
        )

    def _request_kwargs(self, request: ChatRequest) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"options": request.options}
        if request.tools:
            kwargs["tools"] = request.tools
        if request.format:
            kwargs["format"] = request.format
        return kwargs

    def _process_tool_calls(self, answer: Answer) -> List[int]:
        store = self.app.store
        keys = []
        for tool_call in answer.tool_calls:
            result = self.app.tools.execute_tool_call(tool_call)
            if result.is_error:
                keys.append(store.append(ERROR_ROLE, result.content))
                continue
            content = f"The answer from the tool named {result.function_name} is {result.content}"
            keys.append(store.append(SYSTEM_ROLE, content))
        return keys

    # --- Hooks ---

    def _before_llm_call(self, request: ChatRequest) -> None:
        logger.debug(
            "Chat request: model=%s messages=%d tools=%d",
            request.model,
            len(request.messages),
            len(request.tools),
        )

    def _after_llm_call(self, answer: Answer) -> None:
        logger.debug(
            "Chat answer: done=%s tool_calls=%d", answer.done, len(answer.tool_calls)
        )

    def _before_commit(self, answer: Answer) -> None:
        pass

"""
The main entrypoint for the llamachat package.

This module contains the :class:`Llamachat` session: it owns the message
store, the model catalog, the tool registry and the retriever, and drives
the session state machine. Every collaborator can be injected, which is how
the tests swap in fakes.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from . import engine as engine_module
from .catalog import ModelCatalog
from .errors import BackendFailure, ModelNotFound, SessionNotReady
from .llm import LLM, Ollama, probe
from .models import ERROR_ROLE, SessionState, TurnResult
from .retrieval import Chroma, Retrieval
from .settings import Settings
from .store import InMemory, Store
from .tools import ToolRegistry, default_registry

__version__ = "0.3.0"

logger = logging.getLogger(__name__)


class Llamachat:
    """One chat session against an Ollama server.

    States move as follows: ``IDLE`` until :meth:`connect` is tried,
    ``AWAITING_MODEL_SELECTION`` while there is no reachable backend or no
    usable model, ``READY`` once both exist, and ``AWAITING_COMPLETION`` /
    ``PROCESSING_TOOL_CALLS`` while the engine runs a turn.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm: Optional[LLM] = None,
        store: Optional[Store] = None,
        tools: Optional[ToolRegistry] = None,
        retrieval: Optional[Retrieval] = None,
        engine: Optional[engine_module.Engine] = None,
    ) -> None:
        """
        Parameters
        ----------
        settings : Settings, optional
            Preferences to start from and to write changes back to.
            Defaults to ``Settings.load()``.
        llm : LLM, optional
            Chat backend. When omitted, an ``Ollama`` client is built for
            the URL given to :meth:`connect`.
        store : Store, optional
            Message history. Defaults to ``InMemory()``.
        tools : ToolRegistry, optional
            Callable tools. Defaults to the built-in ``adder`` and ``motd``.
        retrieval : Retrieval, optional
            Retriever for prompt augmentation. Defaults to a ``Chroma``
            client for ``settings.chroma_url``.
        engine : Engine, optional
            Turn orchestrator. Defaults to ``Synchronous``; it is bound to
            this session.
        """
        self.settings = settings if settings is not None else Settings.load()
        self.store = store if store is not None else InMemory()
        self.tools = tools if tools is not None else default_registry()
        self.retrieval = (
            retrieval
            if retrieval is not None
            else Chroma(
                self.settings.chroma_url,
                collection=self.settings.chroma_collection,
            )
        )
        self.engine = engine if engine is not None else engine_module.Synchronous()
        self.engine.app = self

        self._injected_llm = llm
        self.llm: Optional[LLM] = llm
        self.catalog: Optional[ModelCatalog] = None

        self.state = SessionState.IDLE
        self.tools_enabled = self.settings.tools_enabled
        self.rag_enabled = self.settings.rag_enabled
        self.active_tool_names: Optional[Set[str]] = None
        self.last_error = ""
        self.usage: Tuple[int, Optional[int]] = (0, None)

    # --- Connection ---

    def connect(self, url: Optional[str] = None, initial_model: Optional[str] = None) -> bool:
        """Probes ``url`` and selects ``initial_model``.

        Returns True when the session is ``READY``. On failure the reason is
        kept in :attr:`last_error` and the session waits for a new URL or a
        model choice.
        """
        self._ensure_idle("reconnect")
        url = url if url is not None else self.settings.ollama_url
        model = initial_model if initial_model is not None else self.settings.last_model
        self.state = SessionState.AWAITING_MODEL_SELECTION
        self.catalog = None

        try:
            probe(url)
            llm = self._injected_llm or Ollama(
                host=url,
                timeout=self.settings.request_timeout,
                stream=self.settings.stream,
            )
            catalog = ModelCatalog(llm)
            catalog.list_models()
        except BackendFailure as exc:
            self.last_error = str(exc)
            logger.warning("Cannot use backend %r: %s", url, exc)
            return False

        self.llm = llm
        self.catalog = catalog
        self.settings.update(ollama_url=url)

        try:
            self.select_model(model)
        except ModelNotFound as exc:
            self.last_error = str(exc)
            logger.warning("Initial model unavailable: %s", exc)
            return False
        return True

    def change_backend(self, url: str) -> bool:
        logger.info("Switching backend to %s", url)
        if self._injected_llm is None:
            self.llm = None
        return self.connect(url, self.settings.last_model)

    def has_valid_connection(self) -> bool:
        return self.catalog is not None and bool(self.catalog.current_model)

    def reconnect(self) -> bool:
        """Probes the configured backend again, keeping the current model."""
        model = self.catalog.current_model if self.catalog else self.settings.last_model
        return self.connect(self.settings.ollama_url, model)

    # --- Models ---

    def model_names(self) -> List[str]:
        return self.catalog.model_names() if self.catalog else []

    @property
    def current_model(self) -> str:
        return self.catalog.current_model if self.catalog else ""

    def select_model(self, name: str) -> None:
        """Switches the current model. History is left untouched.

        Raises ``ModelNotFound`` (current model unchanged) or
        ``SessionNotReady`` when no backend listing is available.
        """
        self._ensure_idle("switch models")
        if self.catalog is None:
            raise SessionNotReady("no backend connection")
        self.catalog.select_model(name)
        self.settings.update(last_model=name)
        if self.state == SessionState.AWAITING_MODEL_SELECTION:
            self.state = SessionState.READY
        self.last_error = ""
        self.update_usage()

    # --- Toggles ---

    def active_tools(self) -> List[Dict[str, Any]]:
        """Schemas the backend may call this turn; empty when tools are off."""
        return self.tools.get_tools(enabled=self.tools_enabled, names=self.active_tool_names)

    def set_active_tools(self, names: Optional[Iterable[str]]) -> None:
        """Limits the offered tools to ``names``; None offers every tool.

        Raises ``ToolNotFound`` for a name the registry does not hold.
        """
        if names is None:
            self.active_tool_names = None
            return
        names = set(names)
        for name in names:
            self.tools.get(name)
        self.active_tool_names = names

    def set_tools_enabled(self, enabled: bool) -> None:
        self.tools_enabled = enabled
        self.settings.update(tools_enabled=enabled)

    def set_rag_enabled(self, enabled: bool) -> None:
        self.rag_enabled = enabled
        self.settings.update(rag_enabled=enabled)

    def set_rag_url(self, url: str) -> None:
        if isinstance(self.retrieval, Chroma):
            self.retrieval.url = url
        self.settings.update(chroma_url=url)

    def set_dark_mode(self, enabled: bool) -> None:
        self.settings.update(dark_mode=enabled)

    # --- Conversation ---

    @property
    def busy(self) -> bool:
        """True while a turn is in flight."""
        return self.state in (
            SessionState.AWAITING_COMPLETION,
            SessionState.PROCESSING_TOOL_CALLS,
        )

    def _ensure_idle(self, action: str) -> None:
        if self.busy:
            raise SessionNotReady(f"cannot {action} while waiting for a reply")

    def submit(self, user_input: str) -> TurnResult:
        return self.engine.handle_message(user_input)

    async def submit_async(self, user_input: str) -> TurnResult:
        """Like :meth:`submit`, but keeps the event loop free during I/O."""
        return await self.engine.handle_message_async(user_input)

    def report_error(self, message: str) -> int:
        return self.store.append(ERROR_ROLE, message)

    def clear_history(self) -> None:
        self._ensure_idle("clear the conversation")
        self.store.clear()
        self.update_usage()

    def update_usage(self) -> Tuple[int, Optional[int]]:
        """Recomputes the token estimate and the current model's window.

        The window is None when it cannot be fetched right now.
        """
        window = None
        if self.has_valid_connection():
            try:
                window = self.catalog.context_window_size()
            except BackendFailure as exc:
                logger.info("Context window unavailable: %s", exc)
        self.usage = (self.store.estimate_tokens(), window)
        return self.usage

"""Model selection and capability discovery."""

import logging
from typing import Dict, List, Optional, Set

from .errors import ModelNotFound
from .llm import LLM

logger = logging.getLogger(__name__)

# Used when the backend's model metadata carries no context length.
DEFAULT_CONTEXT_WINDOW = 4096


class ModelCatalog:
    """Tracks the models a backend serves and which one is current.

    The listing is cached; :meth:`list_models` refreshes it. Selection is
    validated against the cached listing only.
    """

    def __init__(self, llm: LLM):
        self.llm = llm
        self._names: List[str] = []
        self._current = ""
        self._context_windows: Dict[str, int] = {}

    @classmethod
    def connect(cls, llm: LLM, initial_model: str) -> "ModelCatalog":
        """Lists the backend's models and selects ``initial_model``.

        Raises
        ------
        BackendUnreachable, BackendError
            The listing could not be fetched.
        ModelNotFound
            ``initial_model`` is not served by the backend.
        """
        catalog = cls(llm)
        catalog.list_models()
        catalog.select_model(initial_model)
        return catalog

    @property
    def current_model(self) -> str:
        return self._current

    def list_models(self) -> Set[str]:
        names = self.llm.list_models()
        self._names = sorted(set(names))
        logger.debug("Backend serves %d models", len(self._names))
        return set(self._names)

    def model_names(self) -> List[str]:
        return list(self._names)

    def model_exists(self, name: str) -> bool:
        return name in self._names

    def select_model(self, name: str) -> None:
        if not name or not self.model_exists(name):
            raise ModelNotFound(name)
        self._current = name
        logger.info("Using model %s", name)

    def max_model_name_length(self) -> int:
        return max((len(name) for name in self._names), default=0)

    def context_window_size(self, name: Optional[str] = None) -> int:
        """Returns the context window of ``name`` (default: current model).

        Falls back to ``DEFAULT_CONTEXT_WINDOW`` only when the metadata has
        no context-length field. Request failures propagate.
        """
        name = name or self._current
        if not self.model_exists(name):
            raise ModelNotFound(name)
        if name in self._context_windows:
            return self._context_windows[name]

        info = self.llm.show_model(name)
        size = _context_length(info)
        if size is None:
            logger.debug("No context length reported for %s, assuming %d", name, DEFAULT_CONTEXT_WINDOW)
            size = DEFAULT_CONTEXT_WINDOW
        self._context_windows[name] = size
        return size


def _context_length(info: Dict) -> Optional[int]:
    architecture = info.get("general.architecture")
    candidates = []
    if architecture:
        candidates.append(f"{architecture}.context_length")
    candidates.extend(key for key in info if key.endswith(".context_length"))
    for key in candidates:
        value = info.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
    return None

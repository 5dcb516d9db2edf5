"""
User settings, read at startup and rewritten on every change.

Values come from the JSON settings file first, then from ``LLAMACHAT_*``
environment variables, then from the defaults below.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import PrivateAttr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SETTINGS_PATH_ENV = "LLAMACHAT_SETTINGS_PATH"


def default_settings_path() -> Path:
    override = os.environ.get(SETTINGS_PATH_ENV)
    if override:
        return Path(override)
    return Path.home() / ".config" / "llamachat" / "settings.json"


class Settings(BaseSettings):
    """Persisted user preferences."""

    model_config = SettingsConfigDict(
        env_prefix="LLAMACHAT_",
        extra="ignore",
        validate_assignment=True,
    )

    # ── Backend ──
    ollama_url: str = ""
    last_model: str = ""
    request_timeout: float = 10.0
    stream: bool = False

    # ── Tools ──
    tools_enabled: bool = False
    tool_response_format: Optional[str] = None

    # ── RAG ──
    rag_enabled: bool = False
    chroma_url: str = ""
    chroma_collection: str = "documents"

    # ── Display ──
    dark_mode: bool = False

    _path: Optional[Path] = PrivateAttr(default=None)

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> "Settings":
        """Reads the settings file. A missing or unreadable file gives defaults."""
        path = Path(path) if path is not None else default_settings_path()
        data = {}
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
                data = {}
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", path)
            data = {}

        try:
            settings = cls(**data)
        except ValidationError as exc:
            logger.warning("Ignoring invalid settings in %s: %s", path, exc)
            settings = cls()
        settings._path = path
        return settings

    @property
    def path(self) -> Path:
        return self._path or default_settings_path()

    def save(self) -> None:
        """Rewrites the whole settings file."""
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("Settings saved to %s", path)

    def update(self, **changes) -> None:
        """Applies ``changes`` and saves. Write failures are logged, not raised."""
        for key, value in changes.items():
            setattr(self, key, value)
        try:
            self.save()
        except OSError as exc:
            logger.warning("Could not save settings to %s: %s", self.path, exc)

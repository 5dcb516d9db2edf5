"""
Core pytest configuration and fixtures for llamachat testing.

Provides scripted backends, isolated settings files and ready-to-use
sessions so that no test touches the network or the user's home directory.
"""

from typing import Any, Dict, List
from unittest.mock import patch

import pytest
from llamachat import Llamachat
from llamachat.llm import LLM
from llamachat.models import ASSISTANT_ROLE
from llamachat.retrieval import NoRetrieval
from llamachat.settings import Settings
from llamachat.tools import default_registry

# ===== BACKEND FAKES =====


def chat_reply(content: str = "", tool_calls: List[Dict[str, Any]] = None, model="llama3:latest"):
    """Builds a reply shaped like the Ollama ``/api/chat`` response."""
    message = {"role": ASSISTANT_ROLE, "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return {"model": model, "done": True, "message": message}


def tool_call(name: str, **arguments) -> Dict[str, Any]:
    return {"function": {"name": name, "arguments": arguments}}


class ScriptedLLM(LLM):
    """Backend double that replays queued replies and records requests."""

    def __init__(self, models=("llama3:latest", "tinyllama:latest"), model_info=None):
        self.models = list(models)
        self.model_info = model_info if model_info is not None else {}
        self.replies: List[Any] = []
        self.requests: List[Dict[str, Any]] = []
        self.show_calls: List[str] = []

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    def generate_response(self, messages, model, **kwargs):
        self.requests.append({"messages": messages, "model": model, **kwargs})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def list_models(self):
        return list(self.models)

    def show_model(self, model):
        self.show_calls.append(model)
        if isinstance(self.model_info, Exception):
            raise self.model_info
        return dict(self.model_info)


@pytest.fixture
def reply():
    """Factory for backend chat replies."""
    return chat_reply


@pytest.fixture
def call():
    """Factory for tool-call descriptors inside a chat reply."""
    return tool_call


# ===== ENVIRONMENT =====


@pytest.fixture(autouse=True)
def isolated_settings_env(tmp_path, monkeypatch):
    """Keeps every test away from real settings and LLAMACHAT_* variables."""
    import os

    for key in list(os.environ):
        if key.startswith("LLAMACHAT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("LLAMACHAT_SETTINGS_PATH", str(tmp_path / "default-settings.json"))


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "config" / "settings.json"


@pytest.fixture
def settings(settings_path) -> Settings:
    return Settings.load(settings_path)


# ===== SESSION FIXTURES =====


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def session(settings, scripted_llm) -> Llamachat:
    """A READY session on a scripted backend, with tools and RAG off."""
    app = Llamachat(
        settings=settings,
        llm=scripted_llm,
        tools=default_registry(),
        retrieval=NoRetrieval(),
    )
    with patch("llamachat.probe"):
        assert app.connect("http://ollama.test:11434", "llama3:latest")
    return app


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

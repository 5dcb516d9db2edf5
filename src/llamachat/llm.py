"""Concrete implementations for chat backends."""

import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional

import httpx
from pydantic import ValidationError

from .errors import BackendError, BackendUnreachable
from .models import ASSISTANT_ROLE, Answer, ChatMessage, ToolCall

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 5.0
REQUEST_TIMEOUT = 10.0


class LLM(ABC):
    """Abstract Base Class for all chat backends."""

    @abstractmethod
    def generate_response(
        self, messages: List[Dict[str, Any]], model: str, **kwargs: Any
    ) -> Any:
        """Generates a response from the backend.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            Role/content mappings in conversation order.
        model : str
            The model to use for the generation.
        **kwargs : Any
            Backend parameters (options, tools, format) passed straight to
            the client library.

        Returns
        -------
        Any
            The backend's native response object. Subscript access with
            ``["message"]["content"]`` must work on it.

        Raises
        ------
        BackendUnreachable
            The request could not be delivered or timed out.
        BackendError
            The backend rejected the request or sent an unreadable reply.
        """
        pass

    @abstractmethod
    def list_models(self) -> List[str]:
        """Returns the names of every model the backend can serve."""
        pass

    @abstractmethod
    def show_model(self, model: str) -> Dict[str, Any]:
        """Returns the descriptive metadata for one model."""
        pass

    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the backend's native response."""
        return response["message"].get("content") or ""

    def parse_tool_calls(self, response: Any) -> List[ToolCall]:
        """Extracts requested tool calls, in the order the model sent them."""
        calls = response["message"].get("tool_calls") or []
        parsed = []
        for call in calls:
            function = call["function"]
            arguments = function.get("arguments")
            if arguments is None:
                arguments = {}
            elif isinstance(arguments, str):
                # Some OpenAI-compatible servers send arguments JSON-encoded
                try:
                    arguments = json.loads(arguments or "{}")
                except json.JSONDecodeError:
                    pass
            if isinstance(arguments, Mapping):
                parsed.append(
                    ToolCall(function_name=function["name"], arguments=dict(arguments))
                )
            else:
                parsed.append(
                    ToolCall(
                        function_name=function["name"],
                        error=f"malformed arguments for tool {function['name']}: {arguments!r}",
                    )
                )
        return parsed

    def create_answer(self, response: Any, model: str = "") -> Answer:
        """Normalizes a native response into an :class:`Answer`."""
        tool_calls = self.parse_tool_calls(response)
        message = ChatMessage(
            role=ASSISTANT_ROLE,
            content=self.extract_content(response),
            tool_calls=tool_calls or None,
        )
        done = response.get("done")
        return Answer(
            message=message,
            done=True if done is None else bool(done),
            model=response.get("model") or model,
        )


@contextlib.contextmanager
def _translate_errors(host: str) -> Iterator[None]:
    import ollama

    try:
        yield
    except ollama.ResponseError as exc:
        raise BackendError(
            f"Ollama server at {host} returned an error: {exc.error}",
            status_code=exc.status_code,
        ) from exc
    except (ConnectionError, httpx.TransportError) as exc:
        raise BackendUnreachable(f"failed to connect to Ollama at {host}: {exc}") from exc
    except ValidationError as exc:
        raise BackendError(f"malformed reply from Ollama at {host}: {exc}") from exc
    except ValueError as exc:
        # Undecodable body, e.g. an HTML page from a proxy
        raise BackendError(f"unreadable reply from Ollama at {host}: {exc}") from exc


class Ollama(LLM):
    def __init__(
        self,
        host: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        stream: bool = False,
        client: Any = None,
    ):
        if client is None:
            from ollama import Client

            client = Client(host=host, timeout=timeout)
        self.client = client
        self.host = host or "default host"
        self.stream = stream

    def generate_response(self, messages, model, **kwargs):
        with _translate_errors(self.host):
            if self.stream:
                chunks = self.client.chat(
                    model=model, messages=messages, stream=True, **kwargs
                )
                return self._fold_stream(chunks)
            return self.client.chat(model=model, messages=messages, **kwargs)

    def list_models(self) -> List[str]:
        with _translate_errors(self.host):
            response = self.client.list()
            names = []
            for entry in response["models"]:
                name = entry.get("model") or entry.get("name")
                if name:
                    names.append(name)
            return names

    def show_model(self, model: str) -> Dict[str, Any]:
        with _translate_errors(self.host):
            response = self.client.show(model)
            info = response.get("modelinfo") or response.get("model_info")
            return dict(info or {})

    def _fold_stream(self, chunks) -> Dict[str, Any]:
        content = []
        tool_calls = []
        last = None
        for chunk in chunks:
            last = chunk
            message = chunk["message"]
            content.append(message.get("content") or "")
            tool_calls.extend(message.get("tool_calls") or [])
        return {
            "model": last.get("model") if last is not None else "",
            "done": bool(last.get("done")) if last is not None else False,
            "message": {
                "role": ASSISTANT_ROLE,
                "content": "".join(content),
                "tool_calls": tool_calls,
            },
        }


class Echo(LLM):
    """Offline backend that repeats the last prompt back."""

    def __init__(self, default_model: str = "echo-v1"):
        self.model = default_model

    def generate_response(self, messages, model=None, **kwargs):
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        return {
            "model": model or self.model,
            "done": True,
            "message": {"role": ASSISTANT_ROLE, "content": f"Echo: {user_prompt}"},
        }

    def list_models(self) -> List[str]:
        return [self.model]

    def show_model(self, model: str) -> Dict[str, Any]:
        return {}


def probe(url: str, timeout: float = PROBE_TIMEOUT) -> None:
    """Checks that an Ollama server answers on ``url``.

    Raises :class:`BackendUnreachable` or :class:`BackendError`; returns
    nothing on success.
    """
    if not url:
        raise BackendUnreachable("no Ollama URL configured")

    try:
        response = httpx.get(f"{url.rstrip('/')}/api/tags", timeout=timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise BackendUnreachable(f"failed to connect to Ollama at {url}: {exc}") from exc

    if response.status_code != httpx.codes.OK:
        raise BackendError(
            f"Ollama server at {url} returned status {response.status_code}",
            status_code=response.status_code,
        )
    logger.debug("Ollama server at %s is reachable", url)

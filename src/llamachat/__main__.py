"""Command-line entry point: ``llamachat`` or ``python -m llamachat``."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import Llamachat, __version__
from .logs import configure_logging
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "tinyllama:latest"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llamachat", description="Terminal chat client for Ollama."
    )
    parser.add_argument("--ollama-host", default="", help="Ollama host (default: $OLLAMA_HOST or the saved URL)")
    parser.add_argument("--ollama-port", default="", help="Ollama port (default: $OLLAMA_PORT)")
    parser.add_argument("--model", default="", help="model to start with (default: the last one used)")
    parser.add_argument("--settings", default=None, help="path of the settings file")
    parser.add_argument("--log-file", default=None, help="where to write logs (default: a temp file)")
    parser.add_argument("--debug", action="store_true", help="log requests at debug level")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def backend_url(host: str, port: str) -> str:
    """Joins host and port into a URL, adding a scheme when missing."""
    if not host:
        return ""
    if "://" not in host:
        host = f"http://{host}"
    host = host.rstrip("/")
    if port:
        host = f"{host}:{port}"
    return host


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        log_path = configure_logging(args.log_file, debug=args.debug)
    except OSError as exc:
        print(f"llamachat: cannot open log file: {exc}", file=sys.stderr)
        return 1
    logger.info("Logging to %s", log_path)

    settings = Settings.load(args.settings)
    host = args.ollama_host or os.environ.get("OLLAMA_HOST", "")
    port = args.ollama_port or os.environ.get("OLLAMA_PORT", "")
    url = backend_url(host, port) or settings.ollama_url
    model = args.model or settings.last_model or DEFAULT_MODEL

    session = Llamachat(settings=settings)
    if not session.connect(url, model):
        logger.warning("Starting without a usable backend: %s", session.last_error)

    from .layout import ChatApp

    ChatApp(session).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

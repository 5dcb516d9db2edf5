"""Tests for the file logging setup."""

import logging

import pytest
from llamachat.logs import configure_logging, default_log_file


@pytest.fixture
def package_logger():
    logger = logging.getLogger("llamachat")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_default_file_in_temp_dir():
    path = default_log_file()
    assert path.name.startswith("llamachat-")
    assert path.suffix == ".log"


def test_messages_reach_the_file(tmp_path, package_logger):
    path = configure_logging(tmp_path / "chat.log")

    logging.getLogger("llamachat.engine").info("turn finished")
    logging.getLogger("llamachat.engine").debug("hidden")
    for handler in package_logger.handlers:
        handler.flush()

    text = path.read_text()
    assert "turn finished" in text
    assert "hidden" not in text
    assert package_logger.propagate is False


def test_debug_level(tmp_path, package_logger):
    configure_logging(tmp_path / "chat.log", debug=True)
    assert package_logger.level == logging.DEBUG


def test_reconfiguring_replaces_handler(tmp_path, package_logger):
    configure_logging(tmp_path / "a.log")
    configure_logging(tmp_path / "b.log")
    assert len(package_logger.handlers) == 1

import io
import logging

import pytest

from promptlens.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.parametrize("level, expected", [
    ("debug", logging.DEBUG),
    ("WARNING", logging.WARNING),
    (logging.ERROR, logging.ERROR),
    (None, logging.INFO),
    ("nonsense", logging.INFO),
])
def test_resolve_log_level(level, expected):
    assert resolve_log_level(level) == expected


def test_setup_logging_writes_to_stream(restore_root_logger):
    stream = io.StringIO()
    setup_logging(log_level=logging.INFO, log_format="%(levelname)s %(message)s", stream=stream)

    logging.getLogger("promptlens.test").info("hello")

    assert "INFO hello" in stream.getvalue()
    assert len(restore_root_logger.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_adds_file_handler(restore_root_logger, tmp_path):
    log_file = tmp_path / "promptlens.log"
    setup_logging(log_level=logging.DEBUG, log_file=str(log_file), stream=io.StringIO())

    logging.getLogger("promptlens.test").debug("to file")
    for handler in restore_root_logger.handlers:
        handler.flush()

    assert "to file" in log_file.read_text(encoding="utf-8")

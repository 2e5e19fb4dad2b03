"""Tests for setup_logging."""

import logging
from collections.abc import Iterator

import pytest

from stagegate.logging_setup import setup_logging


@pytest.fixture
def logger_names() -> Iterator[list[str]]:
    """Loggers configured by a test; their handlers are removed afterwards."""
    names: list[str] = []
    yield names
    for name in names:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


class TestSetupLogging:
    def test_console_only(self, logger_names: list[str]) -> None:
        logger_names.append("stagegate-test-console")

        logger = setup_logging("stagegate-test-console")

        [handler] = logger.handlers
        assert isinstance(handler, logging.StreamHandler)
        assert handler.level == logging.INFO
        assert logger.level == logging.DEBUG

    def test_verbose_console(self, logger_names: list[str]) -> None:
        logger_names.append("stagegate-test-verbose")

        logger = setup_logging("stagegate-test-verbose", verbose=True)

        assert logger.handlers[0].level == logging.DEBUG

    def test_file_handler_creates_directory(
        self, logger_names: list[str], tmp_path  # noqa: ANN001
    ) -> None:
        logger_names.append("stagegate-test-file")
        log_file = tmp_path / "logs" / "run.log"

        logger = setup_logging("stagegate-test-file", log_file=str(log_file))
        logger.debug("[Orchestrator] debug goes to the file")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "debug goes to the file" in log_file.read_text()

    def test_child_loggers_share_handlers(self, logger_names: list[str]) -> None:
        logger_names.extend(["stagegate-test-parent", "third_party.agent"])

        logger = setup_logging(
            "stagegate-test-parent", child_loggers=["third_party.agent"]
        )

        assert logging.getLogger("third_party.agent").handlers == logger.handlers

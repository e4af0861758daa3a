import logging

import pytest

from csv2graph.logging_config import NOISY_LOGGERS, setup_logging


@pytest.fixture
def restore_loggers():
    names = ("csv2graph",) + NOISY_LOGGERS
    levels = {name: logging.getLogger(name).level for name in names}
    yield
    logger = logging.getLogger("csv2graph")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


@pytest.mark.usefixtures("restore_loggers")
class TestSetupLogging:
    def test_console_only(self):
        logger = setup_logging(logging.DEBUG)

        assert logger.name == "csv2graph"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_file_handler_receives_records(self, tmp_path):
        log_file = tmp_path / "csv2graph.log"
        logger = setup_logging(logging.INFO, str(log_file))

        logging.getLogger("csv2graph.controller.backend").info("backend ready")
        for handler in logger.handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "csv2graph.controller.backend - INFO - backend ready" in text

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_third_party_loggers_stay_quiet_at_debug(self):
        setup_logging(logging.DEBUG)
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

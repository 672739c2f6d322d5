"""
Tests for logging_config module.
"""

import logging

from novelgen.infra.logging_config import APP_LOGGER_NAME, DailyRotatingFileHandler, setup_logging


class TestDailyRotatingFileHandler:
    """Tests for DailyRotatingFileHandler class."""

    def test_handler_creates_log_directory(self, tmp_path):
        log_dir = tmp_path / "new_logs"
        assert not log_dir.exists()

        handler = DailyRotatingFileHandler(log_dir=str(log_dir))
        assert log_dir.exists()
        handler.close()

    def test_handler_creates_named_log_file(self, tmp_path):
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))

        log_files = list(tmp_path.glob("novelgen_*.log"))
        assert len(log_files) == 1
        # novelgen_YYYYMMDD_HHMMSS.log
        stem_parts = log_files[0].stem.split("_")
        assert len(stem_parts) == 3
        assert len(stem_parts[1]) == 8
        assert len(stem_parts[2]) == 6
        handler.close()

    def test_handler_emits_record(self, tmp_path):
        handler = DailyRotatingFileHandler(log_dir=str(tmp_path))
        handler.setFormatter(logging.Formatter("%(message)s"))

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="Chapter 3 saved",
            args=(),
            exc_info=None,
        )
        handler.emit(record)
        handler.close()

        content = next(tmp_path.glob("novelgen_*.log")).read_text()
        assert "Chapter 3 saved" in content


class TestSetupLogging:
    """Tests for setup_logging function."""

    def teardown_method(self):
        logger = logging.getLogger(APP_LOGGER_NAME)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()

    def test_returns_app_logger(self, tmp_path):
        logger = setup_logging("INFO", log_dir=str(tmp_path))

        assert logger.name == "novelgen"
        assert logger.level == logging.INFO
        assert logger.propagate is False

    def test_repeat_calls_do_not_duplicate_handlers(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))
        logger = setup_logging("DEBUG", log_dir=str(tmp_path))

        assert len(logger.handlers) == 2
        assert logger.level == logging.DEBUG

    def test_module_loggers_reach_the_file(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path))

        logging.getLogger("novelgen.scheduler.dispatcher").info("Claimed job abc")
        for handler in logging.getLogger(APP_LOGGER_NAME).handlers:
            handler.flush()

        content = next(tmp_path.glob("novelgen_*.log")).read_text()
        assert "Claimed job abc" in content

    def test_unknown_level_falls_back_to_info(self, tmp_path):
        logger = setup_logging("LOUD", log_dir=str(tmp_path))
        assert logger.level == logging.INFO

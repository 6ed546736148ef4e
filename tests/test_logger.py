"""日志系统测试"""

import json
import logging

import pytest

from feature_router.config_models import LoggingSettings
from feature_router.utils.logger import NOISY_LOGGERS, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """日志初始化测试"""

    def test_defaults(self):
        settings = setup_logging()
        assert settings.level == "INFO"
        assert logging.getLogger().level == logging.INFO

    def test_accepts_dict(self):
        settings = setup_logging({"level": "debug", "format": "text"})
        assert isinstance(settings, LoggingSettings)
        assert logging.getLogger().level == logging.DEBUG

    def test_noisy_loggers_quietened(self):
        setup_logging(LoggingSettings(level="DEBUG"))
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_file_handler_json(self, tmp_path):
        log_file = tmp_path / "logs" / "router.log"
        setup_logging(LoggingSettings(format="json"), log_file=log_file)

        logging.getLogger("feature_router.test").info("RESOLVE: json line")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert record["message"] == "RESOLVE: json line"
        assert record["levelname"] == "INFO"

    def test_file_from_settings(self, tmp_path):
        log_file = tmp_path / "router.log"
        setup_logging(LoggingSettings(file=str(log_file)))
        logging.getLogger("feature_router.test").warning("BUDGET: text line")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "BUDGET: text line" in log_file.read_text(encoding="utf-8")


class TestGetLogger:
    def test_structured_logger(self):
        setup_logging()
        logger = get_logger("feature_router.test")
        logger.info("structured event", tenant_id="t1")
        assert hasattr(logger, "bind")

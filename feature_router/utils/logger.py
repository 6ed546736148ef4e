"""日志系统模块 - 标准日志 + structlog，支持JSON格式和日志轮换"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pythonjsonlogger.json import JsonFormatter

from ..config_models import LoggingSettings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

# 第三方库的噪音日志
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio", "uvicorn.access", "sqlalchemy.engine")


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(JSON_FORMAT)
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    config: Optional[Union[LoggingSettings, dict[str, Any]]] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> LoggingSettings:
    """
    设置全局日志系统

    Args:
        config: 日志配置（LoggingSettings 或等价字典）
        log_file: 日志文件路径，优先于配置中的 file

    Returns:
        实际生效的日志配置
    """
    if config is None:
        settings = LoggingSettings()
    elif isinstance(config, LoggingSettings):
        settings = config
    else:
        settings = LoggingSettings.model_validate(config)

    log_level = getattr(logging, settings.level.upper(), logging.INFO)
    log_format = settings.format.lower()
    log_file = log_file or settings.file

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(_build_formatter(log_format))
    handlers: list[logging.Handler] = [stream_handler]

    # 添加文件处理器（轮换日志）
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=settings.max_file_size,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(log_format))
        handlers.append(file_handler)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # 配置根日志记录器
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # 禁用第三方库的噪音日志
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return settings


def get_logger(name: Optional[str] = None) -> Any:
    """
    获取结构化日志记录器

    Args:
        name: 日志记录器名称
    """
    return structlog.get_logger(name or "feature_router")

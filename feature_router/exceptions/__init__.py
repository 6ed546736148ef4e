"""
统一异常处理模块
"""

from .base_exceptions import (
    AttemptError,
    BaseRouterException,
    BudgetLedgerUnavailable,
    ConfigurationError,
    FailoverError,
    ProviderError,
    RequestCancelledError,
)
from .error_codes import ErrorCode, get_error_message

__all__ = [
    # 错误码
    "ErrorCode",
    "get_error_message",
    # 异常类
    "BaseRouterException",
    "ConfigurationError",
    "BudgetLedgerUnavailable",
    "ProviderError",
    "FailoverError",
    "RequestCancelledError",
    "AttemptError",
]

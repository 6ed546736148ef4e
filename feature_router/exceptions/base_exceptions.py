"""
统一异常基类
定义路由引擎所有异常的基础结构
"""

import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..types import ErrorKind
from .error_codes import ErrorCode, get_error_message


class BaseRouterException(Exception):
    """路由器基础异常类"""

    def __init__(
        self,
        error_code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.message = message or get_error_message(error_code)
        self.details = details or {}
        self.cause = cause
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = traceback.format_exc() if cause else None

        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式"""
        return {
            "error_code": self.error_code.value,
            "message": self.message,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
            "traceback": self.traceback_str,
        }

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(error_code={self.error_code.value}, message='{self.message}')"


class ConfigurationError(BaseRouterException):
    """配置损坏异常 - 例如目录中没有可用的内置本地提供商"""

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.CONFIG_INVALID,
        config_path: Optional[str] = None,
        **kwargs: Any,
    ):
        details = kwargs.pop("details", None) or {}
        if config_path:
            details["config_path"] = config_path

        super().__init__(error_code, message, details, **kwargs)


class BudgetLedgerUnavailable(BaseRouterException):
    """预算账本不可达 - 只记录日志，不向调用方暴露"""

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        super().__init__(ErrorCode.BUDGET_LEDGER_UNAVAILABLE, message, **kwargs)


_KIND_CODES = {
    ErrorKind.AUTH: ErrorCode.PROVIDER_AUTH_FAILED,
    ErrorKind.RATE_LIMIT: ErrorCode.PROVIDER_RATE_LIMITED,
    ErrorKind.NETWORK: ErrorCode.PROVIDER_NETWORK_ERROR,
    ErrorKind.TIMEOUT: ErrorCode.PROVIDER_TIMEOUT,
    ErrorKind.SERVER_ERROR: ErrorCode.PROVIDER_SERVER_ERROR,
    ErrorKind.UNKNOWN: ErrorCode.PROVIDER_UNKNOWN_ERROR,
}


class ProviderError(BaseRouterException):
    """
    提供商调用异常

    由提供商客户端抛出，已自带错误分类；分类器会直接采用 kind。
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ):
        self.kind = ErrorKind(kind)
        details = kwargs.pop("details", None) or {}
        if provider_id:
            details["provider_id"] = provider_id
        if status_code:
            details["status_code"] = status_code

        super().__init__(_KIND_CODES[self.kind], message, details, **kwargs)


@dataclass
class AttemptError:
    """解析链中一次失败尝试的记录"""

    provider_id: str
    model_id: str
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "model_id": self.model_id,
            "kind": self.kind.value,
            "message": self.message,
        }


class FailoverError(BaseRouterException):
    """
    解析链耗尽异常 - 调用方唯一需要处理的错误类型

    user_message 是面向终端用户的一句话（由最后一次尝试的分类决定），
    errors 保留每次尝试的完整诊断信息。
    """

    error_code_default = ErrorCode.ALL_PROVIDERS_FAILED

    def __init__(
        self,
        errors: list[AttemptError],
        user_message: str,
        message: Optional[str] = None,
        **kwargs: Any,
    ):
        self.errors = list(errors)
        self.total_attempts = len(self.errors)
        self.user_message = user_message
        details = kwargs.pop("details", None) or {}
        details["total_attempts"] = self.total_attempts
        details["errors"] = [e.to_dict() for e in self.errors]

        super().__init__(self.error_code_default, message, details, **kwargs)

    @property
    def last_error(self) -> Optional[AttemptError]:
        return self.errors[-1] if self.errors else None


class RequestCancelledError(FailoverError):
    """调用方放弃请求后，执行器停止推进解析链"""

    error_code_default = ErrorCode.REQUEST_CANCELLED

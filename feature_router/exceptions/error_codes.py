"""
统一错误码体系
定义路由引擎所有错误的标准化错误码
"""

from enum import Enum


class ErrorCode(Enum):
    """系统错误码枚举"""

    # 通用错误 (1000-1099)
    UNKNOWN_ERROR = "E1000"
    INVALID_REQUEST = "E1001"

    # 配置错误 (1100-1199)
    CONFIG_LOAD_FAILED = "E1100"
    CONFIG_INVALID = "E1101"
    BUILTIN_PROVIDER_MISSING = "E1102"
    EMPTY_RESOLUTION_CHAIN = "E1103"

    # 路由错误 (1200-1299)
    ALL_PROVIDERS_FAILED = "E1200"
    REQUEST_CANCELLED = "E1201"

    # 提供商调用错误 (1300-1399)
    PROVIDER_AUTH_FAILED = "E1300"
    PROVIDER_RATE_LIMITED = "E1301"
    PROVIDER_NETWORK_ERROR = "E1302"
    PROVIDER_TIMEOUT = "E1303"
    PROVIDER_SERVER_ERROR = "E1304"
    PROVIDER_UNKNOWN_ERROR = "E1305"

    # 预算错误 (1400-1499)
    BUDGET_LEDGER_UNAVAILABLE = "E1400"


# 错误码到消息的映射
ERROR_MESSAGES = {
    ErrorCode.UNKNOWN_ERROR: "未知错误",
    ErrorCode.INVALID_REQUEST: "无效的请求",
    ErrorCode.CONFIG_LOAD_FAILED: "配置加载失败",
    ErrorCode.CONFIG_INVALID: "配置无效",
    ErrorCode.BUILTIN_PROVIDER_MISSING: "内置本地提供商不可用",
    ErrorCode.EMPTY_RESOLUTION_CHAIN: "解析链为空",
    ErrorCode.ALL_PROVIDERS_FAILED: "所有提供商均调用失败",
    ErrorCode.REQUEST_CANCELLED: "请求已取消",
    ErrorCode.PROVIDER_AUTH_FAILED: "提供商认证失败",
    ErrorCode.PROVIDER_RATE_LIMITED: "提供商请求频率或配额超限",
    ErrorCode.PROVIDER_NETWORK_ERROR: "提供商网络错误",
    ErrorCode.PROVIDER_TIMEOUT: "提供商调用超时",
    ErrorCode.PROVIDER_SERVER_ERROR: "提供商服务端错误",
    ErrorCode.PROVIDER_UNKNOWN_ERROR: "提供商未知错误",
    ErrorCode.BUDGET_LEDGER_UNAVAILABLE: "预算账本不可用",
}


def get_error_message(error_code: ErrorCode, default: str = "未知错误") -> str:
    """获取错误码对应的消息"""
    return ERROR_MESSAGES.get(error_code, default)

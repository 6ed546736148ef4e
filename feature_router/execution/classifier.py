"""
提供商错误分类

把一次调用抛出的任意异常归入固定的错误类别，并给出面向用户的韩语提示。
分类只决定诊断信息和提示文案，不影响是否继续尝试下一个候选。
"""

import asyncio
import re

import httpx

from ..exceptions import ProviderError
from ..types import ErrorKind

USER_MESSAGES = {
    ErrorKind.RATE_LIMIT: "API 사용량 한도를 초과했습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.AUTH: "API 인증에 실패했습니다. 관리자 > LLM 설정에서 API 키를 확인해주세요.",
    ErrorKind.NETWORK: "AI 서비스에 연결할 수 없습니다. 네트워크 상태를 확인해주세요.",
    ErrorKind.TIMEOUT: "AI 응답 시간이 초과되었습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.SERVER_ERROR: "AI 서비스에 일시적인 문제가 발생했습니다. 잠시 후 다시 시도해주세요.",
    ErrorKind.UNKNOWN: "AI 분석 중 오류가 발생했습니다. 다시 시도해주세요.",
}

CANCELLED_MESSAGE = "요청이 취소되었습니다."

# 按顺序匹配，先命中者优先
_MESSAGE_PATTERNS = [
    (ErrorKind.RATE_LIMIT, re.compile(r"rate.?limit|quota|too many requests|\b429\b|insufficient.?credit", re.I)),
    (ErrorKind.AUTH, re.compile(r"api.?key|unauthori[sz]ed|forbidden|authenticat|\b401\b|\b403\b", re.I)),
    (ErrorKind.TIMEOUT, re.compile(r"timed? ?out|deadline exceeded", re.I)),
    (ErrorKind.NETWORK, re.compile(r"network|connection|econnrefused|enotfound|dns|unreachable", re.I)),
    (ErrorKind.SERVER_ERROR, re.compile(r"internal server error|bad gateway|service unavailable|overloaded|\b50[0-4]\b", re.I)),
]


def classify_status_code(status_code: int) -> ErrorKind:
    """HTTP 状态码分类"""
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code in (402, 429):
        return ErrorKind.RATE_LIMIT
    if status_code in (408, 504):
        return ErrorKind.TIMEOUT
    if status_code >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN


def classify_message(message: str) -> ErrorKind:
    for kind, pattern in _MESSAGE_PATTERNS:
        if pattern.search(message or ""):
            return kind
    return ErrorKind.UNKNOWN


def classify_error(error: BaseException) -> ErrorKind:
    """
    异常分类

    优先级：提供商客户端自带的分类 > 异常类型 / HTTP 状态码 > 错误信息关键字
    """
    if isinstance(error, ProviderError):
        return error.kind

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT

    if isinstance(error, httpx.HTTPStatusError):
        kind = classify_status_code(error.response.status_code)
        if kind != ErrorKind.UNKNOWN:
            return kind
        return classify_message(str(error))

    if isinstance(error, (httpx.RequestError, ConnectionError)):
        return ErrorKind.NETWORK

    kind = classify_message(str(error))
    if kind == ErrorKind.UNKNOWN and isinstance(error, OSError):
        return ErrorKind.NETWORK
    return kind


def user_message_for(kind: ErrorKind) -> str:
    return USER_MESSAGES.get(ErrorKind(kind), USER_MESSAGES[ErrorKind.UNKNOWN])

"""Sequential failover execution and provider error classification."""

from .classifier import USER_MESSAGES, classify_error, user_message_for
from .failover import FailoverExecutor, GenerateFn, GenerationResult, InvokeResult

__all__ = [
    "USER_MESSAGES",
    "classify_error",
    "user_message_for",
    "FailoverExecutor",
    "GenerateFn",
    "GenerationResult",
    "InvokeResult",
]

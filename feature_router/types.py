"""
路由引擎共享的枚举与标签类型

功能类型和标签都是开放字符串：已知值会被识别为对应的类别，
未知值按原样透传（参与匹配，显示时回退为原始键名）。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class ProviderKind(str, Enum):
    BUILTIN_LOCAL = "builtin_local"
    EXTERNAL = "external"


class Capability(str, Enum):
    VISION = "vision"
    FUNCTION_CALLING = "function_calling"
    JSON_MODE = "json_mode"
    STREAMING = "streaming"
    TOOLS = "tools"


class CostTier(str, Enum):
    FREE = "free"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QualityTier(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    PREMIUM = "premium"


class MatchMode(str, Enum):
    AUTO_TAG = "auto_tag"
    SPECIFIC_MODEL = "specific_model"


class FallbackMode(str, Enum):
    NEXT_PRIORITY = "next_priority"
    ANY_AVAILABLE = "any_available"
    FAIL = "fail"


class BudgetPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class BudgetStatus(str, Enum):
    OK = "ok"
    WARN_80 = "warn80"
    EXCEEDED = "exceeded"


class ErrorKind(str, Enum):
    """单次提供商调用失败的分类"""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


# 层级顺序：越靠前越便宜/越快
COST_TIER_ORDER = [CostTier.FREE, CostTier.LOW, CostTier.MEDIUM, CostTier.HIGH]
QUALITY_TIER_ORDER = [QualityTier.FAST, QualityTier.BALANCED, QualityTier.PREMIUM]

# 所有模型都具备的基础能力
BASE_TAG = "text"


FEATURE_TYPE_LABELS = {
    "learning_analysis": "학습 분석",
    "counseling_suggest": "상담 제안",
    "report_generate": "보고서 생성",
    "face_analysis": "관상 분석",
    "palm_analysis": "손금 분석",
    "personality_summary": "성향 요약",
    "saju_analysis": "사주 분석",
    "mbti_analysis": "MBTI 분석",
    "vark_analysis": "VARK 분석",
    "name_analysis": "이름 분석",
    "zodiac_analysis": "별자리 분석",
    "compatibility_analysis": "궁합 분석",
    "chat": "채팅",
}

TAG_LABELS = {
    Capability.VISION.value: "Vision",
    Capability.FUNCTION_CALLING.value: "Function Calling",
    Capability.JSON_MODE.value: "JSON Mode",
    Capability.STREAMING.value: "Streaming",
    Capability.TOOLS.value: "Tools",
    CostTier.FREE.value: "무료",
    CostTier.LOW.value: "저렴",
    CostTier.MEDIUM.value: "중간",
    CostTier.HIGH.value: "비쌈",
    QualityTier.FAST.value: "빠른",
    QualityTier.BALANCED.value: "균형",
    QualityTier.PREMIUM.value: "프리미엄",
}

FALLBACK_MODE_LABELS = {
    FallbackMode.NEXT_PRIORITY.value: "다음 우선순위로",
    FallbackMode.ANY_AVAILABLE.value: "사용 가능한 모델 중",
    FallbackMode.FAIL.value: "실패 처리",
}


@dataclass(frozen=True)
class TagInfo:
    """标签解析结果，kind 为 capability / cost_tier / quality_tier / unknown"""

    value: str
    kind: str

    @property
    def is_known(self) -> bool:
        return self.kind != "unknown"

    @property
    def label(self) -> str:
        return TAG_LABELS.get(self.value, self.value)


def normalize_tag(tag: str) -> str:
    """标签统一为去空白的小写形式"""
    return str(tag).strip().lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> frozenset[str]:
    if not tags:
        return frozenset()
    return frozenset(normalize_tag(t) for t in tags if normalize_tag(t))


def parse_tag(tag: str) -> TagInfo:
    """识别标签类别；未知标签保留原值并标记为 unknown"""
    value = normalize_tag(tag)
    if value in {c.value for c in Capability}:
        return TagInfo(value, "capability")
    if value in {c.value for c in CostTier}:
        return TagInfo(value, "cost_tier")
    if value in {q.value for q in QualityTier}:
        return TagInfo(value, "quality_tier")
    return TagInfo(value, "unknown")


def feature_type_label(feature_type: str) -> str:
    """功能类型的显示名称，未知类型回退为原始键名"""
    return FEATURE_TYPE_LABELS.get(feature_type, feature_type)


def fallback_mode_label(mode: str) -> str:
    value = mode.value if isinstance(mode, FallbackMode) else mode
    return FALLBACK_MODE_LABELS.get(value, value)

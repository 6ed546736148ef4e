"""
候选过滤与排序

硬过滤（上下文窗口、视觉、工具）直接剔除候选；
成本/质量偏好只是软排序，不会剔除任何候选。
"""
from typing import Optional

from ..config_models import Model, Provider, ResolutionOverrides, candidate_tags
from ..types import (
    COST_TIER_ORDER,
    QUALITY_TIER_ORDER,
    Capability,
    CostTier,
    QualityTier,
)

Candidate = tuple[Provider, Model]


def meets_context_window(model: Model, min_context_window: Optional[int]) -> bool:
    """上下文窗口未知的模型不满足任何最小窗口要求"""
    if not min_context_window:
        return True
    return model.context_window is not None and model.context_window >= min_context_window


def supports_vision(provider: Provider, model: Model) -> bool:
    return Capability.VISION.value in candidate_tags(provider, model)


def supports_tools(provider: Provider, model: Model) -> bool:
    tags = candidate_tags(provider, model)
    return Capability.TOOLS.value in tags or Capability.FUNCTION_CALLING.value in tags


def apply_hard_filters(
    candidates: list[Candidate], overrides: Optional[ResolutionOverrides]
) -> list[Candidate]:
    """应用覆盖选项中的硬过滤条件"""
    if overrides is None:
        return candidates

    filtered = []
    for provider, model in candidates:
        if not meets_context_window(model, overrides.min_context_window):
            continue
        if overrides.needs_vision and not supports_vision(provider, model):
            continue
        if overrides.needs_tools and not supports_tools(provider, model):
            continue
        filtered.append((provider, model))
    return filtered


def _tier_rank(value, preferred, order) -> int:
    # 偏好层级排第一，其余按从便宜/快到贵/慢
    if preferred is not None and value == preferred:
        return 0
    return 1 + order.index(value)


def order_by_preference(
    candidates: list[Candidate], overrides: Optional[ResolutionOverrides]
) -> list[Candidate]:
    """
    按成本/质量偏好对同等有效的候选排序

    未给出任何偏好时保持目录顺序；排序是稳定的，相同层级保持目录顺序。
    """
    if overrides is None or (
        overrides.preferred_cost is None and overrides.preferred_quality is None
    ):
        return candidates

    preferred_cost: Optional[CostTier] = overrides.preferred_cost
    preferred_quality: Optional[QualityTier] = overrides.preferred_quality

    def sort_key(candidate: Candidate) -> tuple[int, int]:
        provider, _ = candidate
        cost_rank = (
            _tier_rank(provider.cost_tier, preferred_cost, COST_TIER_ORDER)
            if preferred_cost is not None
            else 0
        )
        quality_rank = (
            _tier_rank(provider.quality_tier, preferred_quality, QUALITY_TIER_ORDER)
            if preferred_quality is not None
            else 0
        )
        return (cost_rank, quality_rank)

    return sorted(candidates, key=sort_key)

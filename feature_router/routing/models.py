"""
路由相关的数据模型
"""
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from ..config_models import Model, Provider
from ..types import FallbackMode


ORIGIN_MAPPING = "mapping"
ORIGIN_ANY_AVAILABLE = "any_available"
ORIGIN_PINNED = "pinned"
ORIGIN_BACKSTOP = "backstop"


@dataclass(frozen=True)
class ChainEntry:
    """解析链中的一个候选"""
    provider: Provider
    model: Model
    # 产生该候选的映射优先级；兜底和指定提供商时为 None
    priority: Optional[int] = None
    fallback_mode: Optional[FallbackMode] = None
    origin: str = ORIGIN_MAPPING

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider.id, self.model.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": {
                "id": self.provider.id,
                "name": self.provider.name,
                "kind": self.provider.kind.value,
                "cost_tier": self.provider.cost_tier.value,
            },
            "model": {
                "id": self.model.id,
                "model_id": self.model.model_id,
                "display_name": self.model.label,
                "context_window": self.model.context_window,
                "supports_vision": self.model.supports_vision,
                "supports_tools": self.model.supports_tools,
            },
            "priority": self.priority,
            "fallback_mode": self.fallback_mode.value if self.fallback_mode else None,
            "origin": self.origin,
        }


@dataclass
class ResolutionChain:
    """单次请求的候选解析链，不持久化"""
    feature_type: str
    entries: list[ChainEntry] = field(default_factory=list)
    budget_restricted: bool = False

    def __iter__(self) -> Iterator[ChainEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> ChainEntry:
        return self.entries[index]

    @property
    def primary(self) -> Optional[ChainEntry]:
        return self.entries[0] if self.entries else None

    @property
    def keys(self) -> list[tuple[str, str]]:
        return [e.key for e in self.entries]

    @property
    def provider_ids(self) -> list[str]:
        return [e.provider.id for e in self.entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_type": self.feature_type,
            "budget_restricted": self.budget_restricted,
            "chain": [e.to_dict() for e in self.entries],
        }

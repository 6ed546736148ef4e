"""
Pydantic models for catalog, mapping, budget and settings validation.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .types import (
    BASE_TAG,
    BudgetPeriod,
    Capability,
    CostTier,
    FallbackMode,
    MatchMode,
    ProviderKind,
    QualityTier,
    normalize_tag,
)


class Provider(BaseModel):
    id: str
    name: str
    kind: ProviderKind = ProviderKind.EXTERNAL
    capabilities: list[str] = Field(default_factory=list)
    cost_tier: CostTier = CostTier.MEDIUM
    quality_tier: QualityTier = QualityTier.BALANCED
    enabled: bool = False
    validated: bool = False

    # Only a reference (e.g. env var name) and a masked value are ever kept
    credential_ref: Optional[str] = None
    credential_display: Optional[str] = None
    base_url: Optional[str] = None

    @field_validator("capabilities")
    @classmethod
    def _normalize_capabilities(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for cap in value:
            tag = normalize_tag(cap)
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @property
    def is_builtin(self) -> bool:
        return self.kind == ProviderKind.BUILTIN_LOCAL

    @property
    def is_free(self) -> bool:
        """内置本地提供商始终视为免费"""
        return self.is_builtin or self.cost_tier == CostTier.FREE

    @property
    def is_available(self) -> bool:
        """内置提供商无视 enabled/validated 标志"""
        return self.is_builtin or (self.enabled and self.validated)


class Model(BaseModel):
    model_config = {"protected_namespaces": ()}

    id: str
    provider_id: str
    model_id: str
    display_name: str = ""
    context_window: Optional[int] = Field(default=None, ge=1)
    supports_vision: bool = False
    supports_tools: bool = False
    is_default: bool = False

    @property
    def label(self) -> str:
        return self.display_name or self.model_id


def candidate_tags(provider: Provider, model: Model) -> frozenset[str]:
    """计算 (provider, model) 组合用于 auto_tag 匹配的标签集合"""
    tags = {BASE_TAG, provider.cost_tier.value, provider.quality_tier.value}
    tags.update(provider.capabilities)
    if model.supports_vision:
        tags.add(Capability.VISION.value)
    if model.supports_tools:
        tags.add(Capability.TOOLS.value)
        tags.add(Capability.FUNCTION_CALLING.value)
    return frozenset(tags)


class FeatureMapping(BaseModel):
    model_config = {"validate_assignment": True}

    id: Optional[str] = None
    feature_type: str
    match_mode: MatchMode = MatchMode.AUTO_TAG
    required_tags: list[str] = Field(default_factory=list)
    excluded_tags: list[str] = Field(default_factory=list)
    specific_model_id: Optional[str] = None
    priority: int = 0
    fallback_mode: FallbackMode = FallbackMode.NEXT_PRIORITY

    @field_validator("required_tags", "excluded_tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for tag in value:
            tag = normalize_tag(tag)
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @model_validator(mode="after")
    def _check_specific_model(self) -> "FeatureMapping":
        if self.match_mode == MatchMode.SPECIFIC_MODEL and not self.specific_model_id:
            raise ValueError("specific_model mode requires specific_model_id")
        if self.match_mode == MatchMode.AUTO_TAG and self.specific_model_id:
            raise ValueError("specific_model_id is only valid in specific_model mode")
        return self

    def require_tag(self, tag: str) -> None:
        """加入必需标签，同时从排除标签中移除"""
        tag = normalize_tag(tag)
        self.excluded_tags = [t for t in self.excluded_tags if t != tag]
        if tag not in self.required_tags:
            self.required_tags = [*self.required_tags, tag]

    def exclude_tag(self, tag: str) -> None:
        """加入排除标签，同时从必需标签中移除"""
        tag = normalize_tag(tag)
        self.required_tags = [t for t in self.required_tags if t != tag]
        if tag not in self.excluded_tags:
            self.excluded_tags = [*self.excluded_tags, tag]


class BudgetConfig(BaseModel):
    tenant_id: str
    period: BudgetPeriod
    # 0 = 未配置预算（永不限制）
    budget_usd: Decimal = Field(default=Decimal("0"), ge=0)
    alert_at_80: bool = True
    alert_at_100: bool = True

    @property
    def is_configured(self) -> bool:
        return self.budget_usd > 0


class ResolutionOverrides(BaseModel):
    """单次请求的解析覆盖选项"""

    provider_id: Optional[str] = None
    needs_vision: bool = False
    needs_tools: bool = False
    preferred_cost: Optional[CostTier] = None
    preferred_quality: Optional[QualityTier] = None
    min_context_window: Optional[int] = Field(default=None, ge=1)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "text"  # text or json
    file: Optional[str] = None
    max_file_size: int = 50 * 1024 * 1024
    backup_count: int = 5


class RouterSettings(BaseModel):
    default_timeout_seconds: float = Field(default=60.0, gt=0)
    max_output_tokens: int = Field(default=4096, ge=1)
    temperature: float = 0.7
    budget_warn_ratio: float = Field(default=0.8, gt=0, lt=1)
    # 预算周期按租户本地时间切分
    timezone: str = "Asia/Seoul"
    database_url: Optional[str] = None
    # yaml: 目录和映射来自配置文件；database: 来自数据库（需要 database_url）
    config_store: str = Field(default="yaml", pattern="^(yaml|database)$")
    # 为空时管理接口不做认证
    admin_token: Optional[str] = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

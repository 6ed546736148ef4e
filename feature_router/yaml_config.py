"""
基于YAML的配置加载器 - Pydantic版本
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .config_models import (
    BudgetConfig,
    FeatureMapping,
    Model,
    Provider,
    RouterSettings,
)
from .exceptions import ConfigurationError, ErrorCode
from .store import InMemoryConfigStore
from .types import CostTier, ProviderKind, QualityTier
from .utils.config import load_config, mask_credential

logger = logging.getLogger(__name__)


class ModelSection(BaseModel):
    model_config = {"protected_namespaces": ()}

    id: Optional[str] = None
    model_id: str
    display_name: str = ""
    context_window: Optional[int] = Field(default=None, ge=1)
    supports_vision: bool = False
    supports_tools: bool = False
    is_default: bool = False


class ProviderSection(BaseModel):
    """YAML 中的提供商配置，模型嵌套在提供商下"""

    id: str
    name: Optional[str] = None
    kind: ProviderKind = ProviderKind.EXTERNAL
    capabilities: list[str] = Field(default_factory=list)
    cost_tier: CostTier = CostTier.MEDIUM
    quality_tier: QualityTier = QualityTier.BALANCED
    enabled: bool = False
    validated: bool = False
    base_url: Optional[str] = None
    # 推荐用 api_key_env 引用环境变量；api_key 明文只用于生成掩码显示
    api_key_env: Optional[str] = None
    api_key: Optional[str] = None
    models: list[ModelSection] = Field(default_factory=list)

    def to_provider(self) -> Provider:
        secret = self.api_key
        credential_ref = None
        if self.api_key_env:
            credential_ref = f"env:{self.api_key_env}"
            secret = os.getenv(self.api_key_env) or secret
        elif self.api_key:
            logger.warning(
                f"CONFIG: Provider '{self.id}' has an inline api_key, only a masked value is kept; "
                f"use api_key_env instead"
            )

        return Provider(
            id=self.id,
            name=self.name or self.id,
            kind=self.kind,
            capabilities=self.capabilities,
            cost_tier=self.cost_tier,
            quality_tier=self.quality_tier,
            enabled=self.enabled,
            validated=self.validated,
            credential_ref=credential_ref,
            credential_display=mask_credential(secret),
            base_url=self.base_url,
        )

    def to_models(self) -> list[Model]:
        return [
            Model(
                id=section.id or f"{self.id}:{section.model_id}",
                provider_id=self.id,
                model_id=section.model_id,
                display_name=section.display_name,
                context_window=section.context_window,
                supports_vision=section.supports_vision,
                supports_tools=section.supports_tools,
                is_default=section.is_default,
            )
            for section in self.models
        ]


class RouterConfig(BaseModel):
    settings: RouterSettings = Field(default_factory=RouterSettings)
    providers: list[ProviderSection] = Field(default_factory=list)
    feature_mappings: list[FeatureMapping] = Field(default_factory=list)
    budgets: list[BudgetConfig] = Field(default_factory=list)


class YAMLConfigLoader:
    """基于Pydantic的YAML配置加载器"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._get_default_path("router_config.yaml")

        # 加载并解析配置
        self.config: RouterConfig = self._load_and_validate_config()
        self._apply_env_overrides()

        providers: list[Provider] = []
        models: list[Model] = []
        for section in self.config.providers:
            providers.append(section.to_provider())
            models.extend(section.to_models())

        self.store = InMemoryConfigStore(
            providers=providers,
            models=models,
            mappings=self.config.feature_mappings,
            budgets=self.config.budgets,
        )

        logger.info(
            f"Config loaded: {len(providers)} providers, {len(models)} models, "
            f"{len(self.config.feature_mappings)} feature mappings, {len(self.config.budgets)} budgets"
        )

    @property
    def settings(self) -> RouterSettings:
        return self.config.settings

    def _get_default_path(self, filename: str) -> str:
        """获取配置文件的默认路径"""
        project_root = Path(__file__).parent.parent
        config_file = project_root / "config" / filename
        if config_file.exists():
            return str(config_file)

        example = project_root / "config" / "router_config.example.yaml"
        if example.exists():
            logger.warning(f"Using example config: {example.name}")
            return str(example)

        raise ConfigurationError(
            f"Configuration file {filename} not found in 'config' directory.",
            error_code=ErrorCode.CONFIG_LOAD_FAILED,
            config_path=str(config_file),
        )

    def _load_and_validate_config(self) -> RouterConfig:
        """加载并验证配置文件"""
        try:
            raw_data = load_config(self.config_path)
        except (FileNotFoundError, ValueError) as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            raise ConfigurationError(
                str(e), error_code=ErrorCode.CONFIG_LOAD_FAILED, config_path=str(self.config_path), cause=e
            ) from e

        try:
            return RouterConfig.model_validate(raw_data)
        except ValidationError as e:
            logger.error(f"Invalid config in {self.config_path}: {e}")
            raise ConfigurationError(
                f"Invalid configuration: {e.error_count()} errors",
                config_path=str(self.config_path),
                details={"errors": e.errors(include_url=False)},
                cause=e,
            ) from e

    def _apply_env_overrides(self) -> None:
        """环境变量优先于配置文件"""
        settings = self.config.settings
        if os.getenv("DATABASE_URL"):
            settings.database_url = os.getenv("DATABASE_URL")
        if os.getenv("LOG_LEVEL"):
            settings.logging.level = os.getenv("LOG_LEVEL", "INFO").upper()


# 全局配置加载器实例
_yaml_config_loader: Optional[YAMLConfigLoader] = None


def get_yaml_config_loader() -> YAMLConfigLoader:
    """获取全局YAML配置加载器实例"""
    global _yaml_config_loader
    if _yaml_config_loader is None:
        _yaml_config_loader = YAMLConfigLoader()
    return _yaml_config_loader

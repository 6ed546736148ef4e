"""
Provider/Model 目录

显式传入解析器的只读值对象，替代进程级的全局提供商注册表。
目录顺序（提供商插入顺序 → 模型插入顺序）即 auto_tag 匹配的默认顺序。
"""

import logging
from typing import Callable, Iterable, Optional

from .config_models import Model, Provider, candidate_tags
from .exceptions import ConfigurationError, ErrorCode
from .types import normalize_tags, parse_tag

logger = logging.getLogger(__name__)

ProviderFilter = Callable[[Provider], bool]


class Catalog:
    """提供商与模型目录"""

    def __init__(self, providers: Iterable[Provider], models: Iterable[Model] = ()):
        self._providers: dict[str, Provider] = {}
        self._models: dict[str, Model] = {}
        self._models_by_provider: dict[str, list[Model]] = {}

        for provider in providers:
            if provider.id in self._providers:
                raise ConfigurationError(f"Duplicate provider id '{provider.id}'")
            self._providers[provider.id] = provider
            self._models_by_provider[provider.id] = []
            for cap in provider.capabilities:
                if not parse_tag(cap).is_known:
                    logger.debug(
                        f"CATALOG: Provider '{provider.id}' declares custom capability '{cap}', passing through"
                    )

        for model in models:
            if model.provider_id not in self._providers:
                logger.warning(
                    f"CATALOG: Model '{model.id}' references unknown provider '{model.provider_id}', skipping"
                )
                continue
            if model.id in self._models:
                raise ConfigurationError(f"Duplicate model id '{model.id}'")
            self._models[model.id] = model
            self._models_by_provider[model.provider_id].append(model)

        builtins = [p for p in self._providers.values() if p.is_builtin]
        if len(builtins) > 1:
            raise ConfigurationError(
                f"Catalog has {len(builtins)} builtin_local providers, expected exactly one",
                details={"providers": [p.id for p in builtins]},
            )
        self._builtin: Optional[Provider] = builtins[0] if builtins else None

        for provider_id, provider_models in self._models_by_provider.items():
            defaults = [m.id for m in provider_models if m.is_default]
            if len(defaults) > 1:
                raise ConfigurationError(
                    f"Provider '{provider_id}' has {len(defaults)} default models",
                    details={"models": defaults},
                )

    # --- 查询接口 ---

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers.values())

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    def get_model(self, model_id: str) -> Optional[Model]:
        return self._models.get(model_id)

    def list_enabled_providers(self) -> list[Provider]:
        """启用的提供商；内置本地提供商无论 enabled 标志如何都包含在内"""
        return [p for p in self._providers.values() if p.is_builtin or p.enabled]

    def list_models_for_provider(self, provider_id: str) -> list[Model]:
        return list(self._models_by_provider.get(provider_id, []))

    def default_model(self, provider_id: str) -> Optional[Model]:
        """提供商的默认模型，未标记默认时取第一个模型"""
        models = self._models_by_provider.get(provider_id, [])
        for model in models:
            if model.is_default:
                return model
        return models[0] if models else None

    def is_available(self, provider_id: str) -> bool:
        provider = self._providers.get(provider_id)
        return provider is not None and provider.is_available

    def find_models_by_capability(
        self,
        tags_required: Iterable[str] = (),
        tags_excluded: Iterable[str] = (),
        provider_filter: Optional[ProviderFilter] = None,
    ) -> list[tuple[Provider, Model]]:
        """
        按标签查找 (provider, model) 组合

        Args:
            tags_required: 必须全部具备的标签
            tags_excluded: 不得具备的标签（与必需标签重叠时排除优先）
            provider_filter: 额外的提供商过滤条件

        Returns:
            目录顺序的匹配列表，只包含 enabled 且 validated 的提供商（内置提供商例外）
        """
        required = normalize_tags(tags_required)
        excluded = normalize_tags(tags_excluded)

        matches = []
        for provider in self._providers.values():
            if not provider.is_available:
                continue
            if provider_filter is not None and not provider_filter(provider):
                continue
            for model in self._models_by_provider[provider.id]:
                tags = candidate_tags(provider, model)
                if required <= tags and not (excluded & tags):
                    matches.append((provider, model))
        return matches

    # --- 内置兜底 ---

    def builtin_default(self) -> tuple[Provider, Model]:
        """内置本地提供商的默认模型；缺失说明目录已损坏"""
        if self._builtin is None:
            raise ConfigurationError(
                "Catalog has no builtin_local provider",
                error_code=ErrorCode.BUILTIN_PROVIDER_MISSING,
            )
        model = self.default_model(self._builtin.id)
        if model is None:
            raise ConfigurationError(
                f"Builtin provider '{self._builtin.id}' has no models",
                error_code=ErrorCode.BUILTIN_PROVIDER_MISSING,
            )
        return self._builtin, model

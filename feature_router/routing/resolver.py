"""
功能映射解析器

根据功能类型的映射规则（优先级 + 标签匹配 + 回退模式）生成有序解析链。
解析是同步的纯计算：只读取传入的目录和映射，不做任何 I/O。
"""
import logging
from typing import Iterable, Optional

from ..catalog import Catalog, ProviderFilter
from ..config_models import FeatureMapping, Model, Provider, ResolutionOverrides
from ..types import FallbackMode, MatchMode
from .filters import apply_hard_filters, order_by_preference
from .models import (
    ORIGIN_ANY_AVAILABLE,
    ORIGIN_BACKSTOP,
    ORIGIN_MAPPING,
    ORIGIN_PINNED,
    ChainEntry,
    ResolutionChain,
)

logger = logging.getLogger(__name__)


def _free_only(provider: Provider) -> bool:
    return provider.is_free


class _ChainBuilder:
    """去重并维护兜底条目始终位于链尾"""

    def __init__(self, chain: ResolutionChain, backstop: tuple[Provider, Model]):
        self.chain = chain
        self.backstop = backstop
        self._seen: set[tuple[str, str]] = set()

    @property
    def backstop_key(self) -> tuple[str, str]:
        return (self.backstop[0].id, self.backstop[1].id)

    def contains(self, provider: Provider, model: Model) -> bool:
        return (provider.id, model.id) in self._seen

    def has_provider(self, provider_id: str) -> bool:
        return any(key[0] == provider_id for key in self._seen)

    def add(self, entry: ChainEntry) -> bool:
        # 兜底模型只由 finish() 追加；映射选中它时推迟到链尾，后续映射照常处理
        if entry.key == self.backstop_key or entry.key in self._seen:
            return False
        self._seen.add(entry.key)
        self.chain.entries.append(entry)
        return True

    def finish(self) -> ResolutionChain:
        provider, model = self.backstop
        self.chain.entries.append(ChainEntry(provider=provider, model=model, origin=ORIGIN_BACKSTOP))
        return self.chain


class FeatureMappingResolver:
    """功能映射解析器"""

    def __init__(self, catalog: Catalog, mappings: Iterable[FeatureMapping] = ()):
        self.catalog = catalog
        self._mappings = list(mappings)

    def mappings_for(self, feature_type: str) -> list[FeatureMapping]:
        """功能类型的映射规则，按优先级降序；同优先级保持插入顺序"""
        selected = [m for m in self._mappings if m.feature_type == feature_type]
        return sorted(selected, key=lambda m: m.priority, reverse=True)

    def resolve(
        self,
        feature_type: str,
        overrides: Optional[ResolutionOverrides] = None,
        *,
        restrict_to_free: bool = False,
    ) -> ResolutionChain:
        """
        解析功能类型对应的候选链

        Args:
            feature_type: 功能类型（开放字符串）
            overrides: 请求级覆盖选项
            restrict_to_free: 预算闸门要求只使用免费提供商

        Returns:
            非空的解析链，内置本地默认模型恰好出现一次且位于最后
        """
        backstop = self.catalog.builtin_default()
        chain = ResolutionChain(feature_type=feature_type, budget_restricted=restrict_to_free)
        builder = _ChainBuilder(chain, backstop)
        provider_filter: Optional[ProviderFilter] = _free_only if restrict_to_free else None

        if overrides is not None and overrides.provider_id:
            self._resolve_pinned(builder, overrides.provider_id, provider_filter)
            return builder.finish()

        mappings = self.mappings_for(feature_type)
        if not mappings:
            logger.info(
                f"RESOLVE: No mappings for feature '{feature_type}', using builtin backstop only"
            )
            return builder.finish()

        primary = mappings[0]
        for mapping in mappings:
            candidate = self._resolve_mapping(mapping, builder, overrides, provider_filter)
            if candidate is not None:
                provider, model = candidate
                if (provider.id, model.id) == builder.backstop_key:
                    logger.info(
                        f"RESOLVE: Mapping priority={mapping.priority} selected builtin "
                        f"'{model.id}', deferring it to the end of the chain"
                    )
                builder.add(
                    ChainEntry(
                        provider=provider,
                        model=model,
                        priority=mapping.priority,
                        fallback_mode=mapping.fallback_mode,
                        origin=ORIGIN_MAPPING,
                    )
                )

            if mapping.fallback_mode == FallbackMode.NEXT_PRIORITY:
                continue
            if mapping.fallback_mode == FallbackMode.ANY_AVAILABLE:
                self._expand_any_available(builder, primary, mapping, overrides, provider_filter)
            break

        chain = builder.finish()
        logger.info(
            f"RESOLVE: Feature '{feature_type}' -> {len(chain)} candidates "
            f"{[f'{p}/{m}' for p, m in chain.keys]} (restricted={restrict_to_free})"
        )
        return chain

    def _resolve_mapping(
        self,
        mapping: FeatureMapping,
        builder: _ChainBuilder,
        overrides: Optional[ResolutionOverrides],
        provider_filter: Optional[ProviderFilter],
    ) -> Optional[tuple[Provider, Model]]:
        """解析单条映射；不可用时返回 None"""
        if mapping.match_mode == MatchMode.SPECIFIC_MODEL:
            return self._resolve_specific(mapping, provider_filter)

        candidates = self.catalog.find_models_by_capability(
            mapping.required_tags, mapping.excluded_tags, provider_filter
        )
        candidates = apply_hard_filters(candidates, overrides)
        candidates = order_by_preference(candidates, overrides)

        for provider, model in candidates:
            if not builder.contains(provider, model):
                return provider, model

        logger.info(
            f"RESOLVE: Mapping priority={mapping.priority} for '{mapping.feature_type}' "
            f"matched nothing (required={mapping.required_tags}, excluded={mapping.excluded_tags})"
        )
        return None

    def _resolve_specific(
        self, mapping: FeatureMapping, provider_filter: Optional[ProviderFilter]
    ) -> Optional[tuple[Provider, Model]]:
        model = self.catalog.get_model(mapping.specific_model_id)
        if model is None:
            logger.warning(
                f"RESOLVE: Pinned model '{mapping.specific_model_id}' no longer exists, treating as unavailable"
            )
            return None

        provider = self.catalog.get_provider(model.provider_id)
        if provider is None or not provider.is_available:
            logger.info(
                f"RESOLVE: Pinned model '{model.id}' skipped, provider '{model.provider_id}' is disabled or unvalidated"
            )
            return None

        if provider_filter is not None and not provider_filter(provider):
            logger.info(
                f"RESOLVE: Pinned model '{model.id}' skipped by budget restriction (cost tier {provider.cost_tier.value})"
            )
            return None

        return provider, model

    def _expand_any_available(
        self,
        builder: _ChainBuilder,
        primary: FeatureMapping,
        mapping: FeatureMapping,
        overrides: Optional[ResolutionOverrides],
        provider_filter: Optional[ProviderFilter],
    ) -> None:
        """
        追加所有匹配主映射标签的可用提供商（目录顺序，每个提供商一个模型）

        内置提供商不在此展开，它总是作为兜底出现在链尾。
        """
        candidates = self.catalog.find_models_by_capability(
            primary.required_tags, primary.excluded_tags, provider_filter
        )
        candidates = apply_hard_filters(candidates, overrides)

        by_provider: dict[str, list[Model]] = {}
        providers: dict[str, Provider] = {}
        for provider, model in candidates:
            if provider.is_builtin or builder.has_provider(provider.id):
                continue
            providers[provider.id] = provider
            by_provider.setdefault(provider.id, []).append(model)

        for provider_id, models in by_provider.items():
            chosen = next((m for m in models if m.is_default), models[0])
            builder.add(
                ChainEntry(
                    provider=providers[provider_id],
                    model=chosen,
                    priority=mapping.priority,
                    fallback_mode=mapping.fallback_mode,
                    origin=ORIGIN_ANY_AVAILABLE,
                )
            )

    def _resolve_pinned(
        self,
        builder: _ChainBuilder,
        provider_id: str,
        provider_filter: Optional[ProviderFilter],
    ) -> None:
        """请求指定提供商时绕过映射解析，只保留该提供商默认模型 + 兜底"""
        provider = self.catalog.get_provider(provider_id)
        if provider is None or not provider.is_available:
            logger.warning(
                f"RESOLVE: Requested provider '{provider_id}' is unknown or unavailable, using backstop"
            )
            return
        if provider_filter is not None and not provider_filter(provider):
            logger.warning(
                f"RESOLVE: Requested provider '{provider_id}' blocked by budget restriction, using backstop"
            )
            return

        model = self.catalog.default_model(provider.id)
        if model is None:
            logger.warning(f"RESOLVE: Requested provider '{provider_id}' has no models, using backstop")
            return

        builder.add(ChainEntry(provider=provider, model=model, origin=ORIGIN_PINNED))

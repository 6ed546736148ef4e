"""
数据库配置存储

从 llm_providers / llm_models / feature_mappings / llm_budgets 读取引擎所需的配置，
并提供管理端使用的写操作（保存提供商、验证、默认模型、映射排序、预算）。
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .catalog import Catalog
from .config_models import BudgetConfig, FeatureMapping, Model, Provider
from .database import session_scope
from .exceptions import BudgetLedgerUnavailable
from .models import BudgetRecord, FeatureMappingRecord, ModelRecord, ProviderRecord
from .types import BudgetPeriod

logger = logging.getLogger(__name__)

MOVE_UP = "up"
MOVE_DOWN = "down"


def _to_provider(row: ProviderRecord) -> Provider:
    return Provider(
        id=row.id,
        name=row.name,
        kind=row.kind,
        capabilities=row.capabilities or [],
        cost_tier=row.cost_tier,
        quality_tier=row.quality_tier,
        enabled=bool(row.enabled),
        validated=bool(row.validated),
        credential_ref=row.credential_ref,
        credential_display=row.credential_display,
        base_url=row.base_url,
    )


def _to_model(row: ModelRecord) -> Model:
    return Model(
        id=row.id,
        provider_id=row.provider_id,
        model_id=row.model_id,
        display_name=row.display_name or "",
        context_window=row.context_window,
        supports_vision=bool(row.supports_vision),
        supports_tools=bool(row.supports_tools),
        is_default=bool(row.is_default),
    )


def _to_mapping(row: FeatureMappingRecord) -> FeatureMapping:
    return FeatureMapping(
        id=row.id,
        feature_type=row.feature_type,
        match_mode=row.match_mode,
        required_tags=row.required_tags or [],
        excluded_tags=row.excluded_tags or [],
        specific_model_id=row.specific_model_id,
        priority=row.priority,
        fallback_mode=row.fallback_mode,
    )


def _to_budget(row: BudgetRecord) -> BudgetConfig:
    return BudgetConfig(
        tenant_id=row.tenant_id,
        period=row.period,
        budget_usd=row.budget_usd,
        alert_at_80=bool(row.alert_at_80),
        alert_at_100=bool(row.alert_at_100),
    )


def _next_sort_order(session: Session, column) -> int:
    current = session.execute(select(func.max(column))).scalar()
    return (current or 0) + 1


class SQLConfigStore:
    """数据库配置存储"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    # --- 读取接口（引擎每次请求调用） ---

    def load_catalog(self) -> Catalog:
        with session_scope(self.session_factory) as session:
            providers = session.execute(
                select(ProviderRecord).order_by(ProviderRecord.sort_order, ProviderRecord.created_at)
            ).scalars().all()
            models = session.execute(
                select(ModelRecord).order_by(ModelRecord.sort_order, ModelRecord.created_at)
            ).scalars().all()
            return Catalog([_to_provider(p) for p in providers], [_to_model(m) for m in models])

    def list_mappings(self, feature_type: Optional[str] = None) -> list[FeatureMapping]:
        stmt = select(FeatureMappingRecord).order_by(
            FeatureMappingRecord.sort_order, FeatureMappingRecord.created_at
        )
        if feature_type is not None:
            stmt = stmt.where(FeatureMappingRecord.feature_type == feature_type)
        with session_scope(self.session_factory) as session:
            return [_to_mapping(row) for row in session.execute(stmt).scalars().all()]

    def list_feature_types(self) -> list[str]:
        mappings = self.list_mappings()
        return list(dict.fromkeys(m.feature_type for m in mappings))

    def list_budgets(self, tenant_id: str) -> list[BudgetConfig]:
        """读取失败视为账本不可用，由预算闸门放行"""
        try:
            with session_scope(self.session_factory) as session:
                rows = session.execute(
                    select(BudgetRecord).where(BudgetRecord.tenant_id == tenant_id)
                ).scalars().all()
                return [_to_budget(row) for row in rows]
        except SQLAlchemyError as e:
            raise BudgetLedgerUnavailable(f"Failed to read budgets: {e}", cause=e) from e

    # --- 提供商与模型 ---

    def save_provider(self, provider: Provider) -> Provider:
        """新增或更新提供商；新提供商追加到目录末尾"""
        with session_scope(self.session_factory) as session:
            row = session.get(ProviderRecord, provider.id)
            if row is None:
                row = ProviderRecord(id=provider.id, sort_order=_next_sort_order(session, ProviderRecord.sort_order))
                session.add(row)
            row.name = provider.name
            row.kind = provider.kind.value
            row.capabilities = list(provider.capabilities)
            row.cost_tier = provider.cost_tier.value
            row.quality_tier = provider.quality_tier.value
            row.enabled = provider.enabled
            row.validated = provider.validated
            row.credential_ref = provider.credential_ref
            row.credential_display = provider.credential_display
            row.base_url = provider.base_url
        logger.info(f"REPOSITORY: Saved provider '{provider.id}'")
        return provider

    def mark_validated(self, provider_id: str, validated: bool = True) -> bool:
        with session_scope(self.session_factory) as session:
            row = session.get(ProviderRecord, provider_id)
            if row is None:
                return False
            row.validated = validated
            row.validated_at = datetime.now(timezone.utc).replace(tzinfo=None) if validated else None
        logger.info(f"REPOSITORY: Provider '{provider_id}' validated={validated}")
        return True

    def save_model(self, model: Model) -> Model:
        with session_scope(self.session_factory) as session:
            row = session.get(ModelRecord, model.id)
            if row is None:
                row = ModelRecord(id=model.id, sort_order=_next_sort_order(session, ModelRecord.sort_order))
                session.add(row)
            row.provider_id = model.provider_id
            row.model_id = model.model_id
            row.display_name = model.display_name
            row.context_window = model.context_window
            row.supports_vision = model.supports_vision
            row.supports_tools = model.supports_tools
            row.is_default = False
            session.flush()
            if model.is_default:
                self._set_default(session, row)
        return model

    def set_default_model(self, model_id: str) -> bool:
        """设为提供商默认模型，同时清除该提供商其他模型的默认标记"""
        with session_scope(self.session_factory) as session:
            row = session.get(ModelRecord, model_id)
            if row is None:
                return False
            self._set_default(session, row)
        logger.info(f"REPOSITORY: Model '{model_id}' is now the default")
        return True

    def _set_default(self, session: Session, row: ModelRecord) -> None:
        session.execute(
            update(ModelRecord)
            .where(ModelRecord.provider_id == row.provider_id, ModelRecord.id != row.id)
            .values(is_default=False)
        )
        row.is_default = True

    def delete_model(self, model_id: str) -> bool:
        """删除模型；引用它的 specific_model 映射保留，解析时视为不可用"""
        with session_scope(self.session_factory) as session:
            row = session.get(ModelRecord, model_id)
            if row is None:
                return False
            session.delete(row)
        return True

    # --- 功能映射 ---

    def save_mapping(self, mapping: FeatureMapping) -> FeatureMapping:
        """新增或更新映射，返回带 id 的映射"""
        mapping_id = mapping.id or uuid.uuid4().hex
        with session_scope(self.session_factory) as session:
            row = session.get(FeatureMappingRecord, mapping_id)
            if row is None:
                row = FeatureMappingRecord(
                    id=mapping_id,
                    sort_order=_next_sort_order(session, FeatureMappingRecord.sort_order),
                )
                session.add(row)
            row.feature_type = mapping.feature_type
            row.match_mode = mapping.match_mode.value
            row.required_tags = list(mapping.required_tags)
            row.excluded_tags = list(mapping.excluded_tags)
            row.specific_model_id = mapping.specific_model_id
            row.priority = mapping.priority
            row.fallback_mode = mapping.fallback_mode.value
        return mapping.model_copy(update={"id": mapping_id})

    def delete_mapping(self, mapping_id: str) -> bool:
        with session_scope(self.session_factory) as session:
            row = session.get(FeatureMappingRecord, mapping_id)
            if row is None:
                return False
            session.delete(row)
        return True

    def move_mapping(self, mapping_id: str, direction: str) -> Optional[FeatureMapping]:
        """
        在同一功能类型内上移/下移映射

        上移：优先级设为前一条 +1；下移：优先级设为后一条 -1。
        已经在边界上时不做修改。

        Returns:
            更新后的映射；映射不存在时返回 None
        """
        if direction not in (MOVE_UP, MOVE_DOWN):
            raise ValueError(f"direction must be '{MOVE_UP}' or '{MOVE_DOWN}', got '{direction}'")

        with session_scope(self.session_factory) as session:
            row = session.get(FeatureMappingRecord, mapping_id)
            if row is None:
                return None

            group = session.execute(
                select(FeatureMappingRecord)
                .where(FeatureMappingRecord.feature_type == row.feature_type)
                .order_by(FeatureMappingRecord.sort_order, FeatureMappingRecord.created_at)
            ).scalars().all()
            # 与解析器一致：优先级降序，同优先级保持插入顺序
            ordered = sorted(group, key=lambda r: r.priority, reverse=True)
            index = next(i for i, r in enumerate(ordered) if r.id == row.id)

            if direction == MOVE_UP and index > 0:
                row.priority = ordered[index - 1].priority + 1
            elif direction == MOVE_DOWN and index < len(ordered) - 1:
                row.priority = ordered[index + 1].priority - 1
            session.flush()
            return _to_mapping(row)

    # --- 预算 ---

    def save_budget(self, budget: BudgetConfig) -> BudgetConfig:
        """每个 (租户, 周期) 只保留一条预算配置"""
        with session_scope(self.session_factory) as session:
            row = session.execute(
                select(BudgetRecord).where(
                    BudgetRecord.tenant_id == budget.tenant_id,
                    BudgetRecord.period == BudgetPeriod(budget.period).value,
                )
            ).scalar_one_or_none()
            if row is None:
                row = BudgetRecord(tenant_id=budget.tenant_id, period=budget.period.value)
                session.add(row)
            row.budget_usd = budget.budget_usd
            row.alert_at_80 = budget.alert_at_80
            row.alert_at_100 = budget.alert_at_100
        return budget

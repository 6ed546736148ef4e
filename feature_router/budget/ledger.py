"""
预算账本 - 按租户记录每次成功调用的成本

账本只追加不修改：record_spend 是一次追加，current_spend 对窗口内的记录求和，
因此并发写入不需要读-改-写，也不会丢失更新。
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from threading import Lock
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..database import session_scope
from ..exceptions import BudgetLedgerUnavailable
from ..models import UsageRecord
from ..types import BudgetPeriod
from .periods import DEFAULT_TIMEZONE, period_bounds

logger = logging.getLogger(__name__)

Amount = Union[Decimal, float, int, str]

_COST_QUANTUM = Decimal("0.000001")


def to_decimal(amount: Amount) -> Decimal:
    """金额统一转换为 Decimal；float 先转字符串避免二进制误差"""
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def _utc(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass
class UsageEntry:
    """单次成功调用的用量记录"""

    tenant_id: str
    cost_usd: Decimal
    provider_id: Optional[str] = None
    model_id: Optional[str] = None
    feature_type: Optional[str] = None
    failover_from: Optional[str] = None
    success: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BudgetLedger(ABC):
    """预算账本基类"""

    def __init__(self, timezone_name: str = DEFAULT_TIMEZONE):
        self.timezone_name = timezone_name

    def record_spend(
        self,
        tenant_id: str,
        amount: Amount,
        *,
        provider_id: Optional[str] = None,
        model_id: Optional[str] = None,
        feature_type: Optional[str] = None,
        failover_from: Optional[str] = None,
        success: bool = True,
        created_at: Optional[datetime] = None,
    ) -> UsageEntry:
        """追加一条用量记录，同时计入日/周/月三个周期"""
        cost = to_decimal(amount)
        if cost < 0:
            raise ValueError(f"Spend amount must not be negative, got {cost}")

        entry = UsageEntry(
            tenant_id=tenant_id,
            cost_usd=cost,
            provider_id=provider_id,
            model_id=model_id,
            feature_type=feature_type,
            failover_from=failover_from,
            success=success,
            created_at=_utc(created_at),
        )
        self._append(entry)
        logger.debug(f"BUDGET: Recorded ${cost} for tenant '{tenant_id}' via {provider_id}/{model_id}")
        return entry

    def current_spend(
        self, tenant_id: str, period: BudgetPeriod, now: Optional[datetime] = None
    ) -> Decimal:
        """当前周期窗口内的累计花费"""
        start, end = period_bounds(BudgetPeriod(period), now, self.timezone_name)
        return self._sum_between(tenant_id, start, end)

    @abstractmethod
    def _append(self, entry: UsageEntry) -> None:
        ...

    @abstractmethod
    def _sum_between(self, tenant_id: str, start: datetime, end: datetime) -> Decimal:
        ...


class InMemoryBudgetLedger(BudgetLedger):
    """内存账本，用于测试和单进程部署"""

    def __init__(self, timezone_name: str = DEFAULT_TIMEZONE):
        super().__init__(timezone_name)
        self._entries: list[UsageEntry] = []
        self._lock = Lock()

    def _append(self, entry: UsageEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def _sum_between(self, tenant_id: str, start: datetime, end: datetime) -> Decimal:
        with self._lock:
            entries = list(self._entries)
        return sum(
            (e.cost_usd for e in entries if e.tenant_id == tenant_id and start <= e.created_at <= end),
            Decimal("0"),
        )

    def entries(self, tenant_id: Optional[str] = None) -> list[UsageEntry]:
        with self._lock:
            return [e for e in self._entries if tenant_id is None or e.tenant_id == tenant_id]


class SQLBudgetLedger(BudgetLedger):
    """基于 llm_usage 表的账本；数据库错误统一转换为 BudgetLedgerUnavailable"""

    def __init__(self, session_factory: Optional[sessionmaker] = None, timezone_name: str = DEFAULT_TIMEZONE):
        super().__init__(timezone_name)
        self.session_factory = session_factory

    def _append(self, entry: UsageEntry) -> None:
        try:
            with session_scope(self.session_factory) as session:
                session.add(
                    UsageRecord(
                        tenant_id=entry.tenant_id,
                        provider_id=entry.provider_id,
                        model_id=entry.model_id,
                        feature_type=entry.feature_type,
                        cost_usd=entry.cost_usd,
                        failover_from=entry.failover_from,
                        success=entry.success,
                        created_at=entry.created_at.replace(tzinfo=None),
                    )
                )
        except SQLAlchemyError as e:
            raise BudgetLedgerUnavailable(f"Failed to record usage: {e}", cause=e) from e

    def _sum_between(self, tenant_id: str, start: datetime, end: datetime) -> Decimal:
        stmt = select(func.sum(UsageRecord.cost_usd)).where(
            UsageRecord.tenant_id == tenant_id,
            UsageRecord.created_at >= start.replace(tzinfo=None),
            UsageRecord.created_at <= end.replace(tzinfo=None),
        )
        try:
            with session_scope(self.session_factory) as session:
                total = session.execute(stmt).scalar()
        except SQLAlchemyError as e:
            raise BudgetLedgerUnavailable(f"Failed to read usage: {e}", cause=e) from e

        if total is None:
            return Decimal("0")
        return to_decimal(total).quantize(_COST_QUANTUM)

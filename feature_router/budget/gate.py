"""
预算闸门

在解析之前检查租户预算：
- 任一已配置周期达到 100% → exceeded，解析链收缩为免费/本地提供商
- 达到警告阈值（默认 80%）且开启 alert_at_80 → warn80，只提示不限制
- 账本不可达时放行（ok），只记录日志
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Protocol

from ..config_models import BudgetConfig
from ..exceptions import BudgetLedgerUnavailable
from ..types import BudgetPeriod, BudgetStatus
from .ledger import BudgetLedger

logger = logging.getLogger(__name__)

PERIOD_LABELS = {
    BudgetPeriod.DAILY: "일간",
    BudgetPeriod.WEEKLY: "주간",
    BudgetPeriod.MONTHLY: "월간",
}

_SEVERITY = {BudgetStatus.OK: 0, BudgetStatus.WARN_80: 1, BudgetStatus.EXCEEDED: 2}


class BudgetSource(Protocol):
    def list_budgets(self, tenant_id: str) -> list[BudgetConfig]:
        ...


@dataclass
class PeriodUsage:
    """单个周期的预算使用情况"""

    period: BudgetPeriod
    budget_usd: Decimal
    current_cost_usd: Decimal
    usage_percent: float
    remaining_usd: Optional[Decimal]
    is_over_budget: bool
    alert_threshold: Optional[int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.value,
            "period_label": PERIOD_LABELS[self.period],
            "budget_usd": str(self.budget_usd),
            "current_cost_usd": str(self.current_cost_usd),
            "usage_percent": self.usage_percent,
            "remaining_usd": str(self.remaining_usd) if self.remaining_usd is not None else None,
            "is_over_budget": self.is_over_budget,
            "alert_threshold": self.alert_threshold,
        }


@dataclass
class BudgetCheck:
    """预算检查结果"""

    status: BudgetStatus = BudgetStatus.OK
    restrict_to_free: bool = False
    alerts: list[str] = field(default_factory=list)
    periods: list[PeriodUsage] = field(default_factory=list)
    ledger_available: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "restrict_to_free": self.restrict_to_free,
            "alerts": list(self.alerts),
            "periods": [p.to_dict() for p in self.periods],
            "ledger_available": self.ledger_available,
        }


class BudgetGate:
    """预算闸门"""

    def __init__(self, ledger: BudgetLedger, budgets: BudgetSource, warn_ratio: float = 0.8):
        self.ledger = ledger
        self.budgets = budgets
        self.warn_ratio = Decimal(str(warn_ratio))

    def _usage(self, config: BudgetConfig, now: Optional[datetime]) -> PeriodUsage:
        spend = self.ledger.current_spend(config.tenant_id, config.period, now)

        if not config.is_configured:
            return PeriodUsage(
                period=config.period,
                budget_usd=config.budget_usd,
                current_cost_usd=spend,
                usage_percent=0.0,
                remaining_usd=None,
                is_over_budget=False,
                alert_threshold=None,
            )

        ratio = spend / config.budget_usd
        is_over = ratio >= 1
        if is_over and config.alert_at_100:
            threshold: Optional[int] = 100
        elif not is_over and ratio >= self.warn_ratio and config.alert_at_80:
            threshold = 80
        else:
            threshold = None

        return PeriodUsage(
            period=config.period,
            budget_usd=config.budget_usd,
            current_cost_usd=spend,
            usage_percent=round(float(ratio * 100), 2),
            remaining_usd=max(config.budget_usd - spend, Decimal("0")),
            is_over_budget=is_over,
            alert_threshold=threshold,
        )

    def summarize(self, tenant_id: str, now: Optional[datetime] = None) -> list[PeriodUsage]:
        """
        租户所有周期的预算使用情况

        Raises:
            BudgetLedgerUnavailable: 账本不可达（管理接口需要知道数据不可用）
        """
        configs = sorted(self.budgets.list_budgets(tenant_id), key=lambda c: list(BudgetPeriod).index(c.period))
        return [self._usage(config, now) for config in configs]

    def check_budget(self, tenant_id: Optional[str], now: Optional[datetime] = None) -> BudgetCheck:
        """
        检查租户预算状态

        Returns:
            BudgetCheck；status 取所有已配置周期中最严重的一个
        """
        if not tenant_id:
            return BudgetCheck()

        try:
            periods = self.summarize(tenant_id, now)
        except BudgetLedgerUnavailable as e:
            logger.warning(f"BUDGET: Ledger unavailable for tenant '{tenant_id}', failing open: {e}")
            return BudgetCheck(ledger_available=False)

        check = BudgetCheck(periods=periods)
        for usage in periods:
            if not usage.budget_usd > 0:
                continue

            label = PERIOD_LABELS[usage.period]
            if usage.is_over_budget:
                status = BudgetStatus.EXCEEDED
                check.restrict_to_free = True
            elif usage.alert_threshold == 80:
                status = BudgetStatus.WARN_80
            else:
                status = BudgetStatus.OK

            if usage.alert_threshold == 100:
                check.alerts.append(
                    f"{label} 예산을 초과했습니다 (${usage.current_cost_usd} / ${usage.budget_usd})"
                )
            elif usage.alert_threshold == 80:
                check.alerts.append(
                    f"{label} 예산의 {usage.usage_percent:.0f}%를 사용했습니다 "
                    f"(${usage.current_cost_usd} / ${usage.budget_usd})"
                )

            if _SEVERITY[status] > _SEVERITY[check.status]:
                check.status = status

        if check.status != BudgetStatus.OK:
            logger.info(
                f"BUDGET: Tenant '{tenant_id}' status={check.status.value} "
                f"restrict_to_free={check.restrict_to_free}"
            )
        return check

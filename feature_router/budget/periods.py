"""
预算周期窗口计算

所有窗口按租户本地时区切分：
- daily: 本地当天 00:00
- weekly: 最近的周日 00:00
- monthly: 本月 1 日 00:00
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..types import BudgetPeriod

DEFAULT_TIMEZONE = "Asia/Seoul"


def _resolve_tz(tz: Optional[str]) -> ZoneInfo:
    return ZoneInfo(tz or DEFAULT_TIMEZONE)


def period_start(period: BudgetPeriod, now: Optional[datetime] = None, tz: Optional[str] = None) -> datetime:
    """
    返回周期窗口起点（带时区）

    Args:
        period: 预算周期
        now: 参考时间；naive 时间视为 UTC
        tz: IANA 时区名
    """
    zone = _resolve_tz(tz)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)

    period = BudgetPeriod(period)
    if period == BudgetPeriod.DAILY:
        return midnight
    if period == BudgetPeriod.WEEKLY:
        # weekday(): 周一=0 ... 周日=6
        days_since_sunday = (local.weekday() + 1) % 7
        return midnight - timedelta(days=days_since_sunday)
    return midnight.replace(day=1)


def period_bounds(
    period: BudgetPeriod, now: Optional[datetime] = None, tz: Optional[str] = None
) -> tuple[datetime, datetime]:
    """窗口起点与当前时间，均转换为 UTC"""
    zone = _resolve_tz(tz)
    if now is None:
        now = datetime.now(zone)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start = period_start(period, now, tz)
    return start.astimezone(timezone.utc), now.astimezone(timezone.utc)

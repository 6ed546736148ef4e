"""
Budget and usage data models
预算配置与用量记录数据表
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base


class BudgetRecord(Base):
    """llm_budgets表 - 每个租户每个周期一条预算配置"""
    __tablename__ = "llm_budgets"
    __table_args__ = (UniqueConstraint("tenant_id", "period", name="uq_llm_budgets_tenant_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    period = Column(String(20), nullable=False)                     # daily, weekly, monthly
    budget_usd = Column(Numeric(12, 2), nullable=False, default=0)  # 0 = 未配置
    alert_at_80 = Column(Boolean, default=True)
    alert_at_100 = Column(Boolean, default=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<BudgetRecord(tenant_id='{self.tenant_id}', period='{self.period}', budget_usd={self.budget_usd})>"


class UsageRecord(Base):
    """llm_usage表 - 只追加的调用成本记录"""
    __tablename__ = "llm_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    provider_id = Column(String(64))
    model_id = Column(String(64))
    feature_type = Column(String(64))
    cost_usd = Column(Numeric(12, 6), nullable=False, default=0)
    failover_from = Column(String(64))                              # 故障转移前的首选提供商
    success = Column(Boolean, default=True)

    # UTC，不带时区
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<UsageRecord(tenant_id='{self.tenant_id}', provider_id='{self.provider_id}', cost_usd={self.cost_usd})>"

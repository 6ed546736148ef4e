"""
Provider / Model data models
提供商与模型数据表
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base


class ProviderRecord(Base):
    """llm_providers表 - LLM服务提供商"""
    __tablename__ = "llm_providers"

    id = Column(String(64), primary_key=True)
    name = Column(String(100), nullable=False)
    kind = Column(String(20), nullable=False, default="external")   # builtin_local, external
    capabilities = Column(JSON, default=list)                       # ["vision", "tools", ...]
    cost_tier = Column(String(20), default="medium")                # free, low, medium, high
    quality_tier = Column(String(20), default="balanced")           # fast, balanced, premium

    # 状态
    enabled = Column(Boolean, default=False)
    validated = Column(Boolean, default=False)
    validated_at = Column(DateTime)

    # 凭据只保存引用和掩码显示值
    credential_ref = Column(String(200))
    credential_display = Column(String(100))
    base_url = Column(String(500))

    sort_order = Column(Integer, default=0)                         # 目录顺序
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # 关系
    models = relationship(
        "ModelRecord",
        back_populates="provider",
        cascade="all, delete-orphan",
        order_by="ModelRecord.sort_order",
    )

    def __repr__(self):
        return f"<ProviderRecord(id='{self.id}', kind='{self.kind}', cost_tier='{self.cost_tier}')>"


class ModelRecord(Base):
    """llm_models表 - 提供商下的模型"""
    __tablename__ = "llm_models"

    id = Column(String(64), primary_key=True)
    provider_id = Column(String(64), ForeignKey("llm_providers.id", ondelete="CASCADE"), nullable=False)
    model_id = Column(String(200), nullable=False)                  # 提供商侧的模型标识
    display_name = Column(String(200), default="")
    context_window = Column(Integer)                                # 可为空
    supports_vision = Column(Boolean, default=False)
    supports_tools = Column(Boolean, default=False)
    is_default = Column(Boolean, default=False)

    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=func.now())

    provider = relationship("ProviderRecord", back_populates="models")

    def __repr__(self):
        return f"<ModelRecord(id='{self.id}', provider_id='{self.provider_id}', model_id='{self.model_id}')>"

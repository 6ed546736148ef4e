"""数据模型模块 - SQLAlchemy data models"""

# 导入所有模型以确保它们被注册到Base.metadata
from .base import Base
from .budget import BudgetRecord, UsageRecord
from .feature_mapping import FeatureMappingRecord
from .provider import ModelRecord, ProviderRecord

__all__ = [
    "Base",
    "ProviderRecord",
    "ModelRecord",
    "FeatureMappingRecord",
    "BudgetRecord",
    "UsageRecord",
]

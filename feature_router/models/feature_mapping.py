"""
Feature mapping data model
功能映射数据表
"""

import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from .base import Base


class FeatureMappingRecord(Base):
    """feature_mappings表 - 功能类型到模型的映射规则"""
    __tablename__ = "feature_mappings"

    id = Column(String(64), primary_key=True, default=lambda: uuid.uuid4().hex)
    feature_type = Column(String(64), nullable=False, index=True)
    match_mode = Column(String(20), nullable=False, default="auto_tag")    # auto_tag, specific_model
    required_tags = Column(JSON, default=list)
    excluded_tags = Column(JSON, default=list)
    # 不设外键：模型被删除后映射保留，解析时视为不可用
    specific_model_id = Column(String(64))
    priority = Column(Integer, nullable=False, default=0)
    fallback_mode = Column(String(20), nullable=False, default="next_priority")

    sort_order = Column(Integer, default=0)                                # 插入顺序
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return (
            f"<FeatureMappingRecord(feature_type='{self.feature_type}', "
            f"match_mode='{self.match_mode}', priority={self.priority})>"
        )

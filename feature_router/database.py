"""
数据库连接和会话管理
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .exceptions import ConfigurationError, ErrorCode
from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./feature_router.db"

# 数据库引擎和会话配置
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None


def init_database(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """初始化数据库连接"""
    global engine, SessionLocal

    database_url = database_url or DEFAULT_DATABASE_URL

    kwargs = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # SQLite特殊配置
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    logger.info(f"DATABASE: Initialized engine for {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_session_factory() -> sessionmaker:
    if SessionLocal is None:
        raise ConfigurationError(
            "Database is not initialized, call init_database() first",
            error_code=ErrorCode.CONFIG_LOAD_FAILED,
        )
    return SessionLocal


def create_tables(bind: Optional[Engine] = None) -> None:
    """创建所有表"""
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """事务会话上下文管理器：成功提交，异常回滚"""
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

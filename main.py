#!/usr/bin/env python3
"""
Feature Router - 管理服务入口

提供解析链预览、预算使用情况和健康检查接口。
"""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from api.admin import create_admin_router
from api.health import create_health_router
from feature_router import __version__
from feature_router.budget.ledger import BudgetLedger, InMemoryBudgetLedger, SQLBudgetLedger
from feature_router.config_models import Model, Provider
from feature_router.database import create_tables, init_database
from feature_router.engine import ModelInvoker, RoutingEngine
from feature_router.exceptions import ProviderError
from feature_router.repository import SQLConfigStore
from feature_router.types import ErrorKind
from feature_router.utils.logger import setup_logging
from feature_router.yaml_config import YAMLConfigLoader, get_yaml_config_loader

logger = logging.getLogger(__name__)


async def unconfigured_invoker(
    provider: Provider, model: Model, prompt: str, *, max_output_tokens: int, temperature: float
) -> str:
    """管理服务本身不调用模型；由宿主应用注入真正的提供商客户端"""
    raise ProviderError(
        ErrorKind.UNKNOWN,
        f"No model invoker registered for provider '{provider.id}'",
        provider_id=provider.id,
    )


def build_engine(config_loader: YAMLConfigLoader, invoker: Optional[ModelInvoker] = None) -> RoutingEngine:
    """根据配置组装路由引擎"""
    settings = config_loader.settings

    store = config_loader.store
    ledger: BudgetLedger = InMemoryBudgetLedger(settings.timezone)
    if settings.database_url:
        init_database(settings.database_url)
        create_tables()
        ledger = SQLBudgetLedger(timezone_name=settings.timezone)
        if settings.config_store == "database":
            store = SQLConfigStore()
        logger.info(f"Using database ledger (config store: {settings.config_store})")
    else:
        logger.warning("No database_url configured, budget ledger is in-memory only")

    return RoutingEngine(store, ledger, invoker or unconfigured_invoker, settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    engine: RoutingEngine = app.state.engine
    catalog = engine.store.load_catalog()
    builtin, model = catalog.builtin_default()
    logger.info(
        f"Feature Router started: {len(catalog.providers)} providers, backstop '{builtin.id}/{model.model_id}'"
    )
    yield
    logger.info("Feature Router shutdown complete")


def create_app(config_loader: Optional[YAMLConfigLoader] = None, invoker: Optional[ModelInvoker] = None) -> FastAPI:
    """创建FastAPI应用"""
    config_loader = config_loader or get_yaml_config_loader()
    setup_logging(config_loader.settings.logging)

    engine = build_engine(config_loader, invoker)

    app = FastAPI(
        title="Feature Router",
        description="LLM provider resolution and failover routing engine",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine

    # 注册API路由模块
    app.include_router(create_health_router(engine))
    app.include_router(create_admin_router(engine))

    logger.info("Feature Router initialized")
    return app


def main():
    parser = argparse.ArgumentParser(description="Feature Router admin service")
    parser.add_argument("--config", help="Path to router_config.yaml")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=7602)
    args = parser.parse_args()

    config_loader = YAMLConfigLoader(args.config) if args.config else get_yaml_config_loader()
    app = create_app(config_loader)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()

"""
Health check API endpoints
健康检查API接口
"""

import time

from fastapi import APIRouter

from feature_router import __version__
from feature_router.engine import RoutingEngine
from feature_router.exceptions import ConfigurationError


def create_health_router(engine: RoutingEngine) -> APIRouter:
    """创建健康检查相关的API路由"""

    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health_check():
        """系统健康检查：目录可加载且存在内置兜底模型"""
        try:
            catalog = engine.store.load_catalog()
            builtin, model = catalog.builtin_default()
        except ConfigurationError as e:
            return {"status": "unhealthy", "version": __version__, "error": e.to_dict()}

        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": int(time.time()),
            "providers": len(catalog.providers),
            "available_providers": sum(1 for p in catalog.providers if p.is_available),
            "builtin_model": f"{builtin.id}/{model.model_id}",
        }

    return router

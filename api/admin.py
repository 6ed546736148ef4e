"""
Admin API endpoints
管理API接口 - 解析链预览、预算使用情况、最近的路由事件
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from feature_router.config_models import ResolutionOverrides
from feature_router.engine import RoutingEngine
from feature_router.exceptions import BudgetLedgerUnavailable, ConfigurationError
from feature_router.types import CostTier, QualityTier, feature_type_label
from feature_router.utils.logger import get_logger

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


class AdminAuthDependency:
    """Admin Token认证依赖；未配置 token 时直接通过"""

    def __init__(self, admin_token: Optional[str] = None):
        self._admin_token = admin_token

    def __call__(self, credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> bool:
        if not self._admin_token:
            return True

        if credentials is None:
            raise HTTPException(status_code=401, detail="Authorization header missing")

        if credentials.credentials != self._admin_token:
            logger.warning("Invalid admin token attempt", token_prefix=credentials.credentials[:4])
            raise HTTPException(status_code=403, detail="Invalid admin token")

        return True


def create_admin_router(engine: RoutingEngine) -> APIRouter:
    """创建管理相关的API路由"""

    router = APIRouter(prefix="/admin", tags=["admin"])
    require_admin = AdminAuthDependency(engine.settings.admin_token)

    @router.get("/features")
    async def list_features(auth: bool = Depends(require_admin)):
        """已配置映射的功能类型"""
        feature_types = engine.store.list_feature_types() if hasattr(engine.store, "list_feature_types") else []
        return {
            "status": "success",
            "features": [{"feature_type": ft, "label": feature_type_label(ft)} for ft in feature_types],
        }

    @router.get("/features/{feature_type}/resolution")
    async def get_resolution_chain(
        feature_type: str,
        tenant_id: Optional[str] = None,
        provider_id: Optional[str] = None,
        needs_vision: bool = False,
        needs_tools: bool = False,
        preferred_cost: Optional[CostTier] = None,
        preferred_quality: Optional[QualityTier] = None,
        min_context_window: Optional[int] = Query(default=None, ge=1),
        auth: bool = Depends(require_admin),
    ):
        """解析链预览：显示请求会按什么顺序尝试哪些模型"""
        overrides = ResolutionOverrides(
            provider_id=provider_id,
            needs_vision=needs_vision,
            needs_tools=needs_tools,
            preferred_cost=preferred_cost,
            preferred_quality=preferred_quality,
            min_context_window=min_context_window,
        )
        try:
            preview = engine.preview(feature_type, overrides, tenant_id)
        except ConfigurationError as e:
            logger.error("Resolution preview failed", feature_type=feature_type, error=str(e))
            raise HTTPException(status_code=500, detail=e.to_dict()) from e
        return {"status": "success", **preview}

    @router.get("/budget/{tenant_id}")
    async def get_budget_status(tenant_id: str, auth: bool = Depends(require_admin)):
        """租户各周期的预算使用情况"""
        try:
            summary = engine.budget_summary(tenant_id)
        except BudgetLedgerUnavailable as e:
            logger.warning("Budget summary unavailable", tenant_id=tenant_id, error=str(e))
            raise HTTPException(status_code=503, detail=f"预算账本暂不可用: {e.message}") from e
        return {"status": "success", **summary}

    @router.get("/events")
    async def get_recent_events(
        limit: int = Query(default=50, ge=1, le=200),
        auth: bool = Depends(require_admin),
    ):
        """最近的路由事件"""
        events = engine.emitter.recent(limit)
        return {"status": "success", "events": [event.to_dict() for event in events]}

    return router

"""管理 API 测试"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.admin import create_admin_router
from api.health import create_health_router
from conftest import make_model, make_provider
from feature_router.budget import InMemoryBudgetLedger, SQLBudgetLedger
from feature_router.config_models import BudgetConfig, FeatureMapping, RouterSettings
from feature_router.engine import RoutingEngine
from feature_router.exceptions import BudgetLedgerUnavailable
from feature_router.observability import EVENT_RESOLVED, RoutingEvent
from feature_router.repository import SQLConfigStore
from feature_router.store import InMemoryConfigStore
from feature_router.yaml_config import YAMLConfigLoader
from main import build_engine, create_app


async def never_called(provider, model, prompt, **kwargs):
    raise AssertionError("admin endpoints must not invoke models")


class UnavailableLedger(InMemoryBudgetLedger):
    def _sum_between(self, tenant_id, start, end):
        raise BudgetLedgerUnavailable("database is down")


def build_client(store, ledger=None, admin_token=None) -> tuple[TestClient, RoutingEngine]:
    engine = RoutingEngine(
        store,
        ledger or InMemoryBudgetLedger(),
        never_called,
        settings=RouterSettings(admin_token=admin_token),
    )
    app = FastAPI()
    app.include_router(create_health_router(engine))
    app.include_router(create_admin_router(engine))
    return TestClient(app), engine


@pytest.fixture
def api_store(providers, models):
    mappings = [
        FeatureMapping(feature_type="face_analysis", required_tags=["vision"], priority=10,
                       fallback_mode="any_available"),
        FeatureMapping(feature_type="chat", required_tags=["json_mode"], priority=1),
    ]
    budgets = [BudgetConfig(tenant_id="t1", period="daily", budget_usd="5")]
    return InMemoryConfigStore(providers=providers, models=models, mappings=mappings, budgets=budgets)


class TestHealth:
    """健康检查"""

    def test_healthy(self, api_store):
        client, _ = build_client(api_store)
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["providers"] == 5
        assert data["available_providers"] == 4
        assert data["builtin_model"] == "local/llama"

    def test_unhealthy_without_builtin(self):
        store = InMemoryConfigStore(providers=[make_provider("openai")], models=[make_model("openai", "gpt")])
        client, _ = build_client(store)
        data = client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["error"]["error_code"]


class TestAdminEndpoints:
    """管理接口"""

    def test_list_features(self, api_store):
        client, _ = build_client(api_store)
        data = client.get("/admin/features").json()
        assert data["features"] == [
            {"feature_type": "face_analysis", "label": "관상 분석"},
            {"feature_type": "chat", "label": "채팅"},
        ]

    def test_resolution_preview(self, api_store):
        client, engine = build_client(api_store)
        data = client.get("/admin/features/face_analysis/resolution").json()

        providers = [item["provider"]["id"] for item in data["chain"]]
        assert providers == ["anthropic", "openai", "gemini", "local"]
        assert data["chain"][2]["origin"] == "any_available"
        assert data["chain"][-1]["origin"] == "backstop"
        assert data["budget_status"] == "ok"
        assert [e.event_type for e in engine.emitter.recent()] == []

    def test_resolution_preview_with_overrides(self, api_store):
        client, _ = build_client(api_store)
        data = client.get(
            "/admin/features/face_analysis/resolution",
            params={"min_context_window": 500000},
        ).json()
        assert [item["provider"]["id"] for item in data["chain"]] == ["gemini", "local"]

    def test_resolution_preview_pinned_provider(self, api_store):
        client, _ = build_client(api_store)
        data = client.get("/admin/features/chat/resolution", params={"provider_id": "anthropic"}).json()
        assert [item["origin"] for item in data["chain"]] == ["pinned", "backstop"]

    def test_resolution_preview_invalid_tier(self, api_store):
        client, _ = build_client(api_store)
        response = client.get("/admin/features/chat/resolution", params={"preferred_cost": "cheap"})
        assert response.status_code == 422

    def test_resolution_preview_broken_catalog(self):
        store = InMemoryConfigStore(providers=[make_provider("openai")], models=[make_model("openai", "gpt")])
        client, _ = build_client(store)
        assert client.get("/admin/features/chat/resolution").status_code == 500

    def test_budget_status(self, api_store):
        ledger = InMemoryBudgetLedger()
        ledger.record_spend("t1", "4.5")
        client, _ = build_client(api_store, ledger=ledger)

        data = client.get("/admin/budget/t1").json()
        assert data["status"] == "warn80"
        assert data["restrict_to_free"] is False
        (daily,) = data["periods"]
        assert daily["period_label"] == "일간"
        assert daily["usage_percent"] == 90.0

    def test_budget_status_ledger_unavailable(self, api_store):
        client, _ = build_client(api_store, ledger=UnavailableLedger())
        assert client.get("/admin/budget/t1").status_code == 503

    def test_recent_events(self, api_store):
        client, engine = build_client(api_store)
        for _ in range(3):
            engine.emitter.emit(RoutingEvent(event_type=EVENT_RESOLVED, feature_type="chat", chain_length=2))

        data = client.get("/admin/events", params={"limit": 2}).json()
        assert len(data["events"]) == 2
        assert data["events"][0]["feature_type"] == "chat"


class TestAdminAuth:
    """管理 Token 认证"""

    def test_missing_token(self, api_store):
        client, _ = build_client(api_store, admin_token="secret-token")
        assert client.get("/admin/features").status_code == 401

    def test_wrong_token(self, api_store):
        client, _ = build_client(api_store, admin_token="secret-token")
        response = client.get("/admin/features", headers={"Authorization": "Bearer wrong-token"})
        assert response.status_code == 403

    def test_valid_token(self, api_store):
        client, _ = build_client(api_store, admin_token="secret-token")
        response = client.get("/admin/features", headers={"Authorization": "Bearer secret-token"})
        assert response.status_code == 200

    def test_health_is_public(self, api_store):
        client, _ = build_client(api_store, admin_token="secret-token")
        assert client.get("/health").status_code == 200


APP_CONFIG = """
settings:
  database_url: {database_url}
  config_store: {config_store}
providers:
  - id: local
    kind: builtin_local
    cost_tier: free
    models:
      - model_id: llama
        is_default: true
feature_mappings:
  - feature_type: chat
    required_tags: [vision]
"""


class TestApplication:
    """应用组装"""

    def loader(self, tmp_path, database_url="''", config_store="yaml"):
        path = tmp_path / "router_config.yaml"
        path.write_text(APP_CONFIG.format(database_url=database_url, config_store=config_store), encoding="utf-8")
        return YAMLConfigLoader(str(path))

    def test_create_app(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        app = create_app(self.loader(tmp_path))
        with TestClient(app) as client:
            assert client.get("/health").json()["builtin_model"] == "local/llama"
            chain = client.get("/admin/features/chat/resolution").json()["chain"]
            assert [item["origin"] for item in chain] == ["backstop"]

    def test_build_engine_in_memory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        engine = build_engine(self.loader(tmp_path))
        assert isinstance(engine.ledger, InMemoryBudgetLedger)
        assert isinstance(engine.store, InMemoryConfigStore)

    def test_build_engine_with_database_store(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        engine = build_engine(self.loader(tmp_path, database_url="'sqlite://'", config_store="database"))
        assert isinstance(engine.ledger, SQLBudgetLedger)
        assert isinstance(engine.store, SQLConfigStore)
        assert engine.store.list_mappings() == []

"""共享测试夹具"""

import sys
from pathlib import Path

import pytest

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from feature_router import database  # noqa: E402
from feature_router.catalog import Catalog  # noqa: E402
from feature_router.config_models import Model, Provider  # noqa: E402
from feature_router.store import InMemoryConfigStore  # noqa: E402


def make_provider(provider_id: str, **kwargs) -> Provider:
    defaults = {"name": provider_id.title(), "enabled": True, "validated": True}
    defaults.update(kwargs)
    return Provider(id=provider_id, **defaults)


def make_model(provider_id: str, model_id: str, **kwargs) -> Model:
    return Model(id=f"{provider_id}:{model_id}", provider_id=provider_id, model_id=model_id, **kwargs)


@pytest.fixture
def providers() -> list[Provider]:
    """目录顺序：local, anthropic, openai, gemini, mistral（未启用）"""
    return [
        make_provider("local", kind="builtin_local", cost_tier="free", quality_tier="fast",
                      enabled=False, validated=False),
        make_provider("anthropic", capabilities=["vision", "tools"], cost_tier="high", quality_tier="premium"),
        make_provider("openai", capabilities=["vision", "function_calling", "json_mode"],
                      cost_tier="medium", quality_tier="balanced"),
        make_provider("gemini", capabilities=["vision", "json_mode"], cost_tier="free", quality_tier="fast"),
        make_provider("mistral", cost_tier="low", quality_tier="balanced", enabled=False),
    ]


@pytest.fixture
def models() -> list[Model]:
    return [
        make_model("local", "llama", context_window=8192, is_default=True),
        make_model("anthropic", "sonnet", context_window=200000, supports_vision=True,
                   supports_tools=True, is_default=True),
        make_model("openai", "gpt", context_window=128000, supports_vision=True,
                   supports_tools=True, is_default=True),
        make_model("openai", "mini", context_window=16000),
        make_model("gemini", "flash", context_window=1000000, supports_vision=True, is_default=True),
        make_model("mistral", "small", context_window=32000, is_default=True),
    ]


@pytest.fixture
def catalog(providers, models) -> Catalog:
    return Catalog(providers, models)


@pytest.fixture
def store(providers, models) -> InMemoryConfigStore:
    return InMemoryConfigStore(providers=providers, models=models)


@pytest.fixture
def session_factory():
    """内存 SQLite 数据库，每个测试独立"""
    engine = database.init_database("sqlite://")
    database.create_tables(engine)
    yield database.get_session_factory()
    engine.dispose()

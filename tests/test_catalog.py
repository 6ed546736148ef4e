"""目录测试"""

import pytest

from conftest import make_model, make_provider
from feature_router.catalog import Catalog
from feature_router.config_models import candidate_tags
from feature_router.exceptions import ConfigurationError, ErrorCode


class TestCatalogQueries:
    """目录查询测试"""

    def test_enabled_providers_include_builtin(self, catalog):
        """内置提供商无论 enabled 标志如何都算启用"""
        ids = [p.id for p in catalog.list_enabled_providers()]
        assert ids == ["local", "anthropic", "openai", "gemini"]

    def test_models_for_provider_in_insertion_order(self, catalog):
        assert [m.id for m in catalog.list_models_for_provider("openai")] == ["openai:gpt", "openai:mini"]
        assert catalog.list_models_for_provider("unknown") == []

    def test_find_by_capability_catalog_order(self, catalog):
        matches = catalog.find_models_by_capability(["vision"])
        assert [m.id for _, m in matches] == [
            "anthropic:sonnet",
            "openai:gpt",
            "openai:mini",
            "gemini:flash",
        ]

    def test_find_by_capability_excluded(self, catalog):
        matches = catalog.find_models_by_capability(["vision"], ["high"])
        assert [m.id for _, m in matches] == ["openai:gpt", "openai:mini", "gemini:flash"]

    def test_find_by_capability_skips_disabled(self, catalog):
        """mistral 未启用，不会出现在匹配结果中"""
        matches = catalog.find_models_by_capability(["low"])
        assert matches == []

    def test_find_by_capability_includes_builtin(self, catalog):
        matches = catalog.find_models_by_capability(["free"])
        assert [m.id for _, m in matches] == ["local:llama", "gemini:flash"]

    def test_find_by_capability_provider_filter(self, catalog):
        matches = catalog.find_models_by_capability(["vision"], provider_filter=lambda p: p.is_free)
        assert [m.id for _, m in matches] == ["gemini:flash"]

    def test_tags_are_case_insensitive(self, catalog):
        matches = catalog.find_models_by_capability([" Vision ", "PREMIUM"])
        assert [m.id for _, m in matches] == ["anthropic:sonnet"]

    def test_unvalidated_provider_unavailable(self):
        providers = [
            make_provider("local", kind="builtin_local", cost_tier="free"),
            make_provider("openai", validated=False),
        ]
        catalog = Catalog(providers, [make_model("local", "llama"), make_model("openai", "gpt")])
        assert not catalog.is_available("openai")
        assert catalog.find_models_by_capability(["medium"]) == []

    def test_default_model(self, catalog):
        assert catalog.default_model("openai").id == "openai:gpt"
        assert catalog.default_model("unknown") is None

    def test_default_model_falls_back_to_first(self):
        providers = [make_provider("local", kind="builtin_local", cost_tier="free")]
        catalog = Catalog(providers, [make_model("local", "a"), make_model("local", "b")])
        assert catalog.default_model("local").id == "local:a"

    def test_custom_capability_passes_through(self):
        """未知能力标签按原样参与匹配"""
        providers = [
            make_provider("local", kind="builtin_local", cost_tier="free"),
            make_provider("clova", capabilities=["Korean"]),
        ]
        catalog = Catalog(providers, [make_model("local", "llama"), make_model("clova", "hcx")])
        matches = catalog.find_models_by_capability(["korean"])
        assert [m.id for _, m in matches] == ["clova:hcx"]


class TestCandidateTags:
    """候选标签测试"""

    def test_tags_combine_provider_and_model(self, catalog):
        provider = catalog.get_provider("anthropic")
        model = catalog.get_model("anthropic:sonnet")
        assert candidate_tags(provider, model) == frozenset(
            {"text", "high", "premium", "vision", "tools", "function_calling"}
        )

    def test_builtin_tags(self, catalog):
        provider = catalog.get_provider("local")
        model = catalog.get_model("local:llama")
        assert candidate_tags(provider, model) == frozenset({"text", "free", "fast"})


class TestCatalogValidation:
    """目录校验测试"""

    def test_duplicate_provider(self):
        with pytest.raises(ConfigurationError):
            Catalog([make_provider("a"), make_provider("a")])

    def test_duplicate_model(self):
        with pytest.raises(ConfigurationError):
            Catalog([make_provider("a")], [make_model("a", "m"), make_model("a", "m")])

    def test_multiple_builtin_providers(self):
        with pytest.raises(ConfigurationError):
            Catalog([
                make_provider("a", kind="builtin_local"),
                make_provider("b", kind="builtin_local"),
            ])

    def test_multiple_default_models(self):
        with pytest.raises(ConfigurationError):
            Catalog(
                [make_provider("a")],
                [make_model("a", "m1", is_default=True), make_model("a", "m2", is_default=True)],
            )

    def test_model_with_unknown_provider_skipped(self):
        catalog = Catalog([make_provider("a")], [make_model("ghost", "m")])
        assert catalog.get_model("ghost:m") is None

    def test_builtin_missing(self):
        catalog = Catalog([make_provider("a")], [make_model("a", "m")])
        with pytest.raises(ConfigurationError) as exc_info:
            catalog.builtin_default()
        assert exc_info.value.error_code == ErrorCode.BUILTIN_PROVIDER_MISSING

    def test_builtin_without_models(self):
        catalog = Catalog([make_provider("local", kind="builtin_local")])
        with pytest.raises(ConfigurationError) as exc_info:
            catalog.builtin_default()
        assert exc_info.value.error_code == ErrorCode.BUILTIN_PROVIDER_MISSING

"""
配置存储

引擎每次请求都从存储读取目录、映射和预算，存储实现可以是：
- InMemoryConfigStore：YAML 配置加载后的内存存储，也用于测试
- SQLConfigStore（repository.py）：数据库存储
"""

from collections.abc import Iterable
from threading import Lock
from typing import Optional, Protocol

from .catalog import Catalog
from .config_models import BudgetConfig, FeatureMapping, Model, Provider
from .types import BudgetPeriod


class ConfigStore(Protocol):
    def load_catalog(self) -> Catalog:
        ...

    def list_mappings(self, feature_type: Optional[str] = None) -> list[FeatureMapping]:
        ...

    def list_budgets(self, tenant_id: str) -> list[BudgetConfig]:
        ...


class InMemoryConfigStore:
    """内存配置存储"""

    def __init__(
        self,
        providers: Iterable[Provider] = (),
        models: Iterable[Model] = (),
        mappings: Iterable[FeatureMapping] = (),
        budgets: Iterable[BudgetConfig] = (),
    ):
        self._lock = Lock()
        self._providers = list(providers)
        self._models = list(models)
        self._mappings = list(mappings)
        self._budgets: dict[tuple[str, BudgetPeriod], BudgetConfig] = {}
        for budget in budgets:
            self._budgets[(budget.tenant_id, budget.period)] = budget
        # 构造时校验一次，目录损坏立即暴露
        self.load_catalog()

    def load_catalog(self) -> Catalog:
        with self._lock:
            return Catalog(self._providers, self._models)

    def list_mappings(self, feature_type: Optional[str] = None) -> list[FeatureMapping]:
        with self._lock:
            return [m for m in self._mappings if feature_type is None or m.feature_type == feature_type]

    def list_feature_types(self) -> list[str]:
        with self._lock:
            return list(dict.fromkeys(m.feature_type for m in self._mappings))

    def list_budgets(self, tenant_id: str) -> list[BudgetConfig]:
        with self._lock:
            return [b for (tenant, _), b in self._budgets.items() if tenant == tenant_id]

    def add_mapping(self, mapping: FeatureMapping) -> None:
        with self._lock:
            self._mappings.append(mapping)

    def set_budget(self, budget: BudgetConfig) -> None:
        """每个 (租户, 周期) 只保留一条配置"""
        with self._lock:
            self._budgets[(budget.tenant_id, budget.period)] = budget

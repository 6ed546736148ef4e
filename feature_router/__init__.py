"""
Feature Router - LLM provider resolution and failover routing engine.

Decides which model serves each AI-backed feature, in what order alternates
are tried on failure, and whether budget limits forbid paid providers.
"""

from .catalog import Catalog
from .config_models import (
    BudgetConfig,
    FeatureMapping,
    Model,
    Provider,
    ResolutionOverrides,
    RouterSettings,
)
from .engine import RoutingEngine
from .exceptions import (
    BudgetLedgerUnavailable,
    ConfigurationError,
    FailoverError,
    ProviderError,
    RequestCancelledError,
)
from .execution import FailoverExecutor, GenerationResult, InvokeResult
from .routing import FeatureMappingResolver, ResolutionChain
from .store import InMemoryConfigStore

__version__ = "0.1.0"

__all__ = [
    "Catalog",
    "BudgetConfig",
    "FeatureMapping",
    "Model",
    "Provider",
    "ResolutionOverrides",
    "RouterSettings",
    "RoutingEngine",
    "BudgetLedgerUnavailable",
    "ConfigurationError",
    "FailoverError",
    "ProviderError",
    "RequestCancelledError",
    "FailoverExecutor",
    "GenerationResult",
    "InvokeResult",
    "FeatureMappingResolver",
    "ResolutionChain",
    "InMemoryConfigStore",
    "__version__",
]

"""
路由引擎 - 功能请求的统一入口

请求 → 预算闸门 → 映射解析（预算限制作为额外过滤） → 故障转移执行 → 结果 / FailoverError
"""

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Optional, Protocol, Union

from .budget.gate import BudgetCheck, BudgetGate
from .budget.ledger import BudgetLedger
from .config_models import Model, Provider, ResolutionOverrides, RouterSettings
from .exceptions import FailoverError
from .execution.failover import FailoverExecutor, GenerationResult, InvokeResult
from .observability import (
    EVENT_FAILED,
    EVENT_RESOLVED,
    EVENT_SUCCEEDED,
    EventEmitter,
    RoutingEvent,
)
from .routing.models import ResolutionChain
from .routing.resolver import FeatureMappingResolver
from .store import ConfigStore
from .types import fallback_mode_label, feature_type_label

logger = logging.getLogger(__name__)


class ModelInvoker(Protocol):
    """提供商调用能力：调用模型并返回文本与成本，失败时抛出（可分类的）异常"""

    def __call__(
        self,
        provider: Provider,
        model: Model,
        prompt: str,
        *,
        max_output_tokens: int,
        temperature: float,
    ) -> Awaitable[Union[InvokeResult, str]]:
        ...


class RoutingEngine:
    """路由引擎"""

    def __init__(
        self,
        store: ConfigStore,
        ledger: BudgetLedger,
        invoker: ModelInvoker,
        *,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[RouterSettings] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.invoker = invoker
        self.emitter = emitter or EventEmitter()
        self.settings = settings or RouterSettings()
        self.gate = BudgetGate(ledger, store, warn_ratio=self.settings.budget_warn_ratio)
        self.executor = FailoverExecutor(ledger, default_timeout=self.settings.default_timeout_seconds)

    def _resolver(self, feature_type: str) -> FeatureMappingResolver:
        # 每次请求重新读取目录和映射，配置修改立即生效
        return FeatureMappingResolver(self.store.load_catalog(), self.store.list_mappings(feature_type))

    def resolve(
        self,
        feature_type: str,
        overrides: Optional[ResolutionOverrides] = None,
        tenant_id: Optional[str] = None,
    ) -> tuple[ResolutionChain, BudgetCheck]:
        """执行预算检查并解析候选链"""
        budget = self.gate.check_budget(tenant_id)
        chain = self._resolver(feature_type).resolve(
            feature_type, overrides, restrict_to_free=budget.restrict_to_free
        )
        return chain, budget

    async def resolve_and_generate(
        self,
        tenant_id: Optional[str],
        feature_type: str,
        prompt: str,
        overrides: Optional[ResolutionOverrides] = None,
        *,
        timeout: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """
        为功能请求选择模型并生成结果

        Args:
            tenant_id: 租户 ID，用于预算检查和记账
            feature_type: 功能类型
            prompt: 已构造好的提示词
            overrides: 请求级覆盖选项
            timeout: 单次调用超时秒数
            max_output_tokens: 输出 token 上限
            temperature: 采样温度
            cancel_event: 调用方放弃请求时置位

        Raises:
            FailoverError: 所有候选都失败（调用方唯一需要处理的错误）
            ConfigurationError: 目录损坏（例如缺少内置本地提供商）
        """
        # 预算查询和配置读取可能访问数据库，放到线程池执行
        loop = asyncio.get_running_loop()
        chain, budget = await loop.run_in_executor(
            None, partial(self.resolve, feature_type, overrides, tenant_id)
        )
        for alert in budget.alerts:
            logger.warning(f"BUDGET ALERT: tenant '{tenant_id}': {alert}")
        self._emit(EVENT_RESOLVED, chain, budget, tenant_id)

        generate = partial(
            self.invoker,
            max_output_tokens=max_output_tokens or self.settings.max_output_tokens,
            temperature=temperature if temperature is not None else self.settings.temperature,
        )

        try:
            result = await self.executor.execute(
                chain,
                generate,
                prompt,
                tenant_id=tenant_id,
                feature_type=feature_type,
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except FailoverError:
            self._emit(EVENT_FAILED, chain, budget, tenant_id)
            raise

        result.budget_status = budget.status.value
        self._emit(
            EVENT_SUCCEEDED,
            chain,
            budget,
            tenant_id,
            chosen_provider_id=result.provider_id,
            was_failover=result.was_failover,
            failover_from=result.failover_from,
        )
        return result

    def preview(
        self,
        feature_type: str,
        overrides: Optional[ResolutionOverrides] = None,
        tenant_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """解析链预览：不调用任何模型，不记账"""
        chain, budget = self.resolve(feature_type, overrides, tenant_id)
        entries = []
        for position, entry in enumerate(chain, start=1):
            item = entry.to_dict()
            item["position"] = position
            item["fallback_mode_label"] = (
                fallback_mode_label(entry.fallback_mode) if entry.fallback_mode else None
            )
            entries.append(item)

        return {
            "feature_type": feature_type,
            "feature_label": feature_type_label(feature_type),
            "budget_status": budget.status.value,
            "budget_restricted": chain.budget_restricted,
            "alerts": list(budget.alerts),
            "chain": entries,
        }

    def budget_summary(self, tenant_id: str) -> dict[str, Any]:
        """租户预算使用情况（管理端）"""
        check = self.gate.check_budget(tenant_id)
        periods = self.gate.summarize(tenant_id)
        return {
            "tenant_id": tenant_id,
            "status": check.status.value,
            "restrict_to_free": check.restrict_to_free,
            "alerts": list(check.alerts),
            "periods": [p.to_dict() for p in periods],
        }

    def _emit(
        self,
        event_type: str,
        chain: ResolutionChain,
        budget: BudgetCheck,
        tenant_id: Optional[str],
        chosen_provider_id: Optional[str] = None,
        was_failover: bool = False,
        failover_from: Optional[str] = None,
    ) -> None:
        if chosen_provider_id is None and event_type == EVENT_RESOLVED and chain.primary is not None:
            chosen_provider_id = chain.primary.provider.id
        self.emitter.emit(
            RoutingEvent(
                event_type=event_type,
                feature_type=chain.feature_type,
                chain_length=len(chain),
                chosen_provider_id=chosen_provider_id,
                was_failover=was_failover,
                failover_from=failover_from,
                budget_status=budget.status.value,
                tenant_id=tenant_id,
            )
        )

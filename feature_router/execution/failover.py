"""
故障转移执行器

按顺序遍历解析链，每个候选最多尝试一次：
- 成功：立即返回，非首个候选时标记 was_failover / failover_from
- 失败：分类、记录、继续下一个（无论错误类别）
- 耗尽：抛出唯一的 FailoverError，用户提示由最后一次失败的类别决定

成本只在调用返回之后写入账本，执行过程中不持有任何锁。
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Union

from ..budget.ledger import BudgetLedger, to_decimal
from ..config_models import Model, Provider
from ..exceptions import (
    AttemptError,
    BudgetLedgerUnavailable,
    ConfigurationError,
    ErrorCode,
    FailoverError,
    RequestCancelledError,
)
from ..routing.models import ChainEntry, ResolutionChain
from .classifier import CANCELLED_MESSAGE, classify_error, user_message_for

logger = logging.getLogger(__name__)


@dataclass
class InvokeResult:
    """一次模型调用的返回值"""

    text: str
    cost_usd: Decimal = Decimal("0")

    def __post_init__(self):
        self.cost_usd = Decimal("0") if self.cost_usd is None else to_decimal(self.cost_usd)


GenerateFn = Callable[[Provider, Model, str], Awaitable[Union[InvokeResult, str]]]


@dataclass
class GenerationResult:
    """执行成功的结果"""

    text: str
    provider_id: str
    model_id: str
    model_name: str
    cost_usd: Decimal
    was_failover: bool = False
    failover_from: Optional[str] = None
    attempts: int = 1
    errors: list[AttemptError] = field(default_factory=list)
    feature_type: Optional[str] = None
    budget_status: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "provider_id": self.provider_id,
            "model_id": self.model_id,
            "model_name": self.model_name,
            "cost_usd": str(self.cost_usd),
            "was_failover": self.was_failover,
            "failover_from": self.failover_from,
            "attempts": self.attempts,
            "errors": [e.to_dict() for e in self.errors],
            "feature_type": self.feature_type,
            "budget_status": self.budget_status,
        }


def _cost_of(raw: Any) -> Decimal:
    """返回值中可识别的成本；缺失、为空或无法解析时按 0 计"""
    cost = raw.get("cost_usd") if isinstance(raw, dict) else getattr(raw, "cost_usd", None)
    if cost is None:
        return Decimal("0")
    try:
        return to_decimal(cost)
    except (ArithmeticError, TypeError, ValueError):
        logger.warning(f"BUDGET: Unparseable cost {cost!r} in model result, recording $0")
        return Decimal("0")


def _coerce_result(raw: Any) -> InvokeResult:
    if isinstance(raw, InvokeResult):
        return raw
    if isinstance(raw, str):
        return InvokeResult(text=raw)
    if isinstance(raw, dict) and isinstance(raw.get("text"), str):
        return InvokeResult(text=raw["text"], cost_usd=_cost_of(raw))
    raise TypeError(f"Model invocation returned unsupported result type {type(raw).__name__}")


class FailoverExecutor:
    """故障转移执行器"""

    def __init__(self, ledger: Optional[BudgetLedger] = None, default_timeout: Optional[float] = 60.0):
        self.ledger = ledger
        self.default_timeout = default_timeout

    async def execute(
        self,
        chain: ResolutionChain,
        generate: GenerateFn,
        prompt: str,
        *,
        tenant_id: Optional[str] = None,
        feature_type: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """
        顺序执行解析链

        Args:
            chain: 解析链
            generate: async (provider, model, prompt) -> InvokeResult | str
            prompt: 提示词
            tenant_id: 成功后记账的租户；为空时不记账
            feature_type: 写入用量记录的功能类型
            timeout: 单次调用超时秒数（必须为正），默认使用 default_timeout；None 表示不限时
            cancel_event: 调用方放弃请求时置位，执行器不再推进解析链

        Raises:
            FailoverError: 所有候选均失败
            RequestCancelledError: 调用方在候选之间取消了请求
            ConfigurationError: 解析链为空
            ValueError: timeout 不是正数
        """
        if len(chain) == 0:
            raise ConfigurationError(
                f"Resolution chain for '{chain.feature_type}' is empty",
                error_code=ErrorCode.EMPTY_RESOLUTION_CHAIN,
            )

        feature_type = feature_type or chain.feature_type
        timeout = timeout if timeout is not None else self.default_timeout
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        first_provider_id = chain[0].provider.id
        errors: list[AttemptError] = []

        for attempt_num, entry in enumerate(chain, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    f"CANCELLED: Request for '{feature_type}' abandoned after {len(errors)} attempts"
                )
                raise RequestCancelledError(errors, CANCELLED_MESSAGE)

            failover_from = first_provider_id if attempt_num > 1 else None
            logger.info(
                f"ATTEMPT #{attempt_num}: Trying '{entry.provider.id}/{entry.model.model_id}' "
                f"for feature '{feature_type}' (origin={entry.origin})"
            )

            try:
                raw = await self._invoke(
                    entry, generate, prompt, timeout, tenant_id, feature_type, failover_from
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._attempt_failed(errors, entry, attempt_num, len(chain), e)
                continue

            # 调用已经完成：返回值不可用时也要先记账再推进
            try:
                result = _coerce_result(raw)
            except TypeError as e:
                await self._record(entry, _cost_of(raw), tenant_id, feature_type, failover_from)
                self._attempt_failed(errors, entry, attempt_num, len(chain), e)
                continue

            await self._record(entry, result.cost_usd, tenant_id, feature_type, failover_from)
            if failover_from:
                logger.info(
                    f"FAILOVER: '{feature_type}' served by '{entry.provider.id}' after "
                    f"{len(errors)} failed attempts (primary '{first_provider_id}')"
                )
            return GenerationResult(
                text=result.text,
                provider_id=entry.provider.id,
                model_id=entry.model.id,
                model_name=entry.model.model_id,
                cost_usd=result.cost_usd,
                was_failover=failover_from is not None,
                failover_from=failover_from,
                attempts=attempt_num,
                errors=errors,
                feature_type=feature_type,
            )

        last = errors[-1]
        logger.error(
            f"ALL CANDIDATES FAILED: '{feature_type}' exhausted {len(errors)} candidates, "
            f"last error [{last.kind.value}] from '{last.provider_id}'"
        )
        raise FailoverError(
            errors,
            user_message_for(last.kind),
            message=f"All {len(errors)} candidates failed for feature '{feature_type}'",
        )

    def _attempt_failed(
        self,
        errors: list[AttemptError],
        entry: ChainEntry,
        attempt_num: int,
        chain_length: int,
        error: Exception,
    ) -> None:
        kind = classify_error(error)
        message = str(error) or error.__class__.__name__
        errors.append(
            AttemptError(
                provider_id=entry.provider.id,
                model_id=entry.model.id,
                kind=kind,
                message=message,
            )
        )
        logger.warning(
            f"ATTEMPT #{attempt_num} FAILED: '{entry.provider.id}/{entry.model.model_id}' "
            f"[{kind.value}] {message[:200]}"
        )
        if attempt_num < chain_length:
            logger.info(f"FAILOVER: Trying next candidate (#{attempt_num + 1})")

    async def _invoke(
        self,
        entry: ChainEntry,
        generate: GenerateFn,
        prompt: str,
        timeout: Optional[float],
        tenant_id: Optional[str],
        feature_type: Optional[str],
        failover_from: Optional[str],
    ) -> Any:
        task = asyncio.ensure_future(generate(entry.provider, entry.model, prompt))
        try:
            if timeout is not None:
                return await asyncio.wait_for(asyncio.shield(task), timeout)
            return await asyncio.shield(task)
        except asyncio.TimeoutError:
            # 超时的调用不会完成，也不会记账
            task.cancel()
            raise
        except asyncio.CancelledError:
            # 调用方放弃请求：进行中的调用继续完成，完成后仍然记账
            task.add_done_callback(
                partial(self._record_abandoned, entry, tenant_id, feature_type, failover_from)
            )
            raise

    def _record_abandoned(
        self,
        entry: ChainEntry,
        tenant_id: Optional[str],
        feature_type: Optional[str],
        failover_from: Optional[str],
        task: asyncio.Future,
    ) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        raw = task.result()
        try:
            cost = _coerce_result(raw).cost_usd
        except TypeError as e:
            logger.warning(f"CANCELLED: Abandoned call to '{entry.provider.id}' returned invalid result: {e}")
            cost = _cost_of(raw)
        logger.info(
            f"CANCELLED: Abandoned call to '{entry.provider.id}/{entry.model.model_id}' completed, recording cost"
        )
        # 回调运行在事件循环上，数据库写入放到线程池
        task.get_loop().run_in_executor(
            None, partial(self._record_spend, entry, cost, tenant_id, feature_type, failover_from)
        )

    async def _record(
        self,
        entry: ChainEntry,
        cost_usd: Decimal,
        tenant_id: Optional[str],
        feature_type: Optional[str],
        failover_from: Optional[str],
    ) -> None:
        """在线程池中写入账本"""
        if self.ledger is None or not tenant_id:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, partial(self._record_spend, entry, cost_usd, tenant_id, feature_type, failover_from)
        )

    def _record_spend(
        self,
        entry: ChainEntry,
        cost_usd: Decimal,
        tenant_id: Optional[str],
        feature_type: Optional[str],
        failover_from: Optional[str],
    ) -> None:
        if self.ledger is None or not tenant_id:
            return
        try:
            self.ledger.record_spend(
                tenant_id,
                cost_usd,
                provider_id=entry.provider.id,
                model_id=entry.model.id,
                feature_type=feature_type,
                failover_from=failover_from,
            )
        except BudgetLedgerUnavailable as e:
            logger.warning(
                f"BUDGET: Failed to record ${cost_usd} for tenant '{tenant_id}': {e}"
            )

"""
路由事件

每次解析、成功（含故障转移）和失败都会产生一个 RoutingEvent，
写入日志并分发给订阅者。订阅者抛出的异常只记录日志，不影响请求。
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

EVENT_RESOLVED = "resolved"
EVENT_SUCCEEDED = "succeeded"
EVENT_FAILED = "failed"

Subscriber = Callable[["RoutingEvent"], None]


@dataclass
class RoutingEvent:
    """单个路由事件"""

    event_type: str
    feature_type: str
    chain_length: int
    chosen_provider_id: Optional[str] = None
    was_failover: bool = False
    failover_from: Optional[str] = None
    budget_status: str = "ok"
    tenant_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EventEmitter:
    """同步事件分发器，保留最近的事件历史"""

    def __init__(self, max_history: int = 200):
        self._subscribers: list[Subscriber] = []
        self._history: deque[RoutingEvent] = deque(maxlen=max_history)
        self._lock = Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """注册订阅者，返回取消订阅函数"""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def emit(self, event: RoutingEvent) -> None:
        with self._lock:
            self._history.append(event)
            subscribers = list(self._subscribers)

        logger.info(
            f"ROUTING EVENT: {event.event_type} feature='{event.feature_type}' "
            f"chain={event.chain_length} provider={event.chosen_provider_id} "
            f"failover={event.was_failover} from={event.failover_from} budget={event.budget_status}"
        )

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.error(f"ROUTING EVENT: Subscriber {subscriber!r} failed: {e}", exc_info=True)

    def recent(self, limit: Optional[int] = None) -> list[RoutingEvent]:
        with self._lock:
            events = list(self._history)
        return events[-limit:] if limit else events

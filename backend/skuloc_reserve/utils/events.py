"""
Diagnostics Event Bus — GoF Observer Pattern

The engine publishes what it did (step values, pool consumption, completion);
subscribers such as the logging handler turn that into audit output. The core
never formats anything itself.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationEvent:
    occurred_at: datetime = dataclass_field(default_factory=lambda: datetime.now(timezone.utc), compare=False)


@dataclass(frozen=True)
class StepEvaluatedEvent(CalculationEvent):
    batch_index: int = 0
    field: str = ""
    flow: str = ""
    step_type: str = ""
    before: Decimal = Decimal("0")
    after: Decimal = Decimal("0")


@dataclass(frozen=True)
class CanonicalValueResolvedEvent(CalculationEvent):
    field: str = ""
    flow_values: Dict[str, Decimal] = dataclass_field(default_factory=dict)
    value: Decimal = Decimal("0")
    by_condition: bool = False


@dataclass(frozen=True)
class PoolConsumedEvent(CalculationEvent):
    reservation: str = ""
    flow: str = ""
    requested: Decimal = Decimal("0")
    pool_before: Decimal = Decimal("0")
    actual: Decimal = Decimal("0")
    constraint: Decimal = Decimal("0")
    pool_after: Decimal = Decimal("0")


@dataclass(frozen=True)
class CalculationCompletedEvent(CalculationEvent):
    scheduling: str = ""
    flows: List[str] = dataclass_field(default_factory=list)
    batches: int = 0
    fields: int = 0


Handler = Callable[[CalculationEvent], None]


class EventBus:

    def __init__(self):
        self._handlers: Dict[Type[CalculationEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[CalculationEvent], handler: Handler) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[CalculationEvent], handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def has_subscribers(self) -> bool:
        return any(self._handlers.values())

    def publish(self, event: CalculationEvent) -> None:
        for event_type, handlers in list(self._handlers.items()):
            if isinstance(event, event_type):
                for handler in list(handlers):
                    handler(event)

    def clear(self) -> None:
        self._handlers.clear()


class LoggingHandler:
    """Writes engine diagnostics to the application log at DEBUG level."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logging.getLogger("skuloc_reserve.diagnostics")

    def __call__(self, event: CalculationEvent) -> None:
        if isinstance(event, StepEvaluatedEvent):
            self._log.debug(
                "step_evaluated batch=%s flow=%s field=%s before=%s after=%s",
                event.batch_index, event.flow, event.field, event.before, event.after,
            )
        elif isinstance(event, PoolConsumedEvent):
            self._log.debug(
                "pool_consumed flow=%s reservation=%s requested=%s pool_before=%s actual=%s constraint=%s pool_after=%s",
                event.flow, event.reservation, event.requested, event.pool_before,
                event.actual, event.constraint, event.pool_after,
            )
        elif isinstance(event, CanonicalValueResolvedEvent) and event.by_condition:
            self._log.debug(
                "canonical_value_resolved field=%s value=%s flow_values=%s",
                event.field, event.value, event.flow_values,
            )
        elif isinstance(event, CalculationCompletedEvent):
            self._log.debug(
                "calculation_completed scheduling=%s flows=%s batches=%s fields=%s",
                event.scheduling, ",".join(event.flows), event.batches, event.fields,
            )


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def configure_event_bus(trace: bool = False) -> EventBus:
    """Reset the process-wide bus; with ``trace`` the logging handler is attached."""
    bus = get_event_bus()
    bus.clear()
    if trace:
        bus.subscribe(CalculationEvent, LoggingHandler())
        logger.info("EventBus initialized with LoggingHandler")
    return bus

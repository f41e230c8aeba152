"""
Reserve Calculation Service — Service Layer (SRP / DIP)

Seeds a context from a SKULOC record, builds each flow's modifier set, runs the
engine over the shared registry and shapes the result for callers.
"""
import logging
from decimal import Decimal
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Union

from skuloc_reserve.calc.constraints import RESERVATION_PRIORITY, RunningPool
from skuloc_reserve.calc.context import CalculationContext
from skuloc_reserve.calc.engine import ReserveCalculationEngine, SchedulingMode
from skuloc_reserve.calc.fields import CalculationFlow, ReserveField
from skuloc_reserve.calc.modifiers import ModifierSet
from skuloc_reserve.calc.registry import StepRegistry
from skuloc_reserve.calc.reserve_steps import BUYER_CLASS, build_reserve_registry
from skuloc_reserve.config import Settings, settings
from skuloc_reserve.core.exceptions import InvalidInputError, ReserveCalcException
from skuloc_reserve.schemas.reserve import (
    ConstraintSummary,
    PoolTraceEntry,
    ReserveCalculationRequest,
    ReserveCalculationResult,
)
from skuloc_reserve.services.initial_values import InitialValueSupplier
from skuloc_reserve.utils.events import CalculationEvent, EventBus, PoolConsumedEvent, get_event_bus

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

KEY_METRICS = (
    ReserveField.INITAFS,
    ReserveField.UNCOMAFS,
    ReserveField.COMMITTED,
    ReserveField.UNCOMMIT,
    ReserveField.RUNNING_AFS,
)

# labels used by the map-style summary
HEADLINE_FIGURES: Dict[str, ReserveField] = {
    "DOTCOMATS": ReserveField.DOTATS,
    "RETAILATS": ReserveField.RETAILATS,
    "UNCOMMIT": ReserveField.UNCOMMIT,
    "COMMITTED": ReserveField.COMMITTED,
    "UNCOMMHR": ReserveField.UNCOMMHR,
    "OMSSUP": ReserveField.OMSSUP,
    "RETFINAL": ReserveField.RETFINAL,
    "OMSFINAL": ReserveField.OMSFINAL,
}


# registries are small but built per division; keep only the recently used ones
REGISTRY_CACHE_SIZE = 8


@lru_cache(maxsize=REGISTRY_CACHE_SIZE)
def get_reserve_registry(division: int = 30) -> StepRegistry:
    """One frozen registry per recently used division, shared by every request."""
    return build_reserve_registry(Decimal(division))


RESERVATIONS_BY_KEY = {reservation.key: reservation for reservation in RESERVATION_PRIORITY}


class PoolTraceCollector:
    """Replays one flow's pool consumption through a ``RunningPool``, in evaluation order."""

    def __init__(self, flow: CalculationFlow):
        self.flow = flow
        self.pool = RunningPool(ZERO)

    def __call__(self, event: CalculationEvent) -> None:
        if not isinstance(event, PoolConsumedEvent) or event.flow != self.flow.value:
            return
        # INITAFS seeds the pool and DOTHRY restarts it from UNCOMAFS
        if event.pool_before != self.pool.available:
            self.pool.rebase(event.pool_before)
        self.pool.consume(RESERVATIONS_BY_KEY[event.reservation], event.requested)

    @property
    def entries(self) -> List[PoolTraceEntry]:
        return [
            PoolTraceEntry(
                reservation=resolution.reservation.key,
                pool_before=resolution.pool_before,
                actual=resolution.actual,
                pool_after=resolution.pool_after,
            )
            for resolution in self.pool.trace
        ]


class ReserveCalculationService:

    def __init__(self, app_settings: Optional[Settings] = None, event_bus: Optional[EventBus] = None):
        self._settings = app_settings or settings
        self._flows = tuple(CalculationFlow(flow) for flow in self._settings.reserve_flows_list)
        self._default_flow = CalculationFlow(self._settings.RESERVE_DEFAULT_FLOW)
        self._scheduling = SchedulingMode(self._settings.RESERVE_SCHEDULING)
        self._bus = event_bus if event_bus is not None else get_event_bus()

    # ── Public API ──────────────────────────────────────────────────────────

    def calculate(self, request: ReserveCalculationRequest) -> ReserveCalculationResult:
        record = request.record
        values = InitialValueSupplier.from_record(record)
        return self._run(
            values,
            channel=request.channel,
            modifiers=request.modifiers,
            buyer_class=record.buyer_class,
            division=record.division,
            label=f"loc={record.location} sku={record.sku}",
        )

    def calculate_from_mapping(
        self,
        values: Mapping[str, Any],
        channel: Optional[Union[CalculationFlow, str]] = None,
        modifiers: Optional[Mapping[str, Any]] = None,
        buyer_class: Optional[str] = None,
    ) -> ReserveCalculationResult:
        seeded = InitialValueSupplier.from_mapping(values)
        division = seeded.get(ReserveField.DIV)
        return self._run(
            seeded,
            channel=channel,
            modifiers=modifiers or {},
            buyer_class=buyer_class,
            division=self._division_of(division) if division is not None else None,
            label=f"loc={seeded[ReserveField.LOC]} sku={seeded[ReserveField.SKU]}",
        )

    @staticmethod
    def summarize(result: ReserveCalculationResult) -> Dict[str, Decimal]:
        return {
            label: result.values.get(field.value, ZERO)
            for label, field in HEADLINE_FIGURES.items()
        }

    # ── Internals ───────────────────────────────────────────────────────────

    @staticmethod
    def _division_of(value: Decimal) -> int:
        if value != value.to_integral_value():
            raise InvalidInputError(f"Division must be a whole number, got {value}")
        return int(value)

    def _run(
        self,
        values: Mapping[ReserveField, Decimal],
        channel: Optional[Union[CalculationFlow, str]],
        modifiers: Mapping[str, Any],
        buyer_class: Optional[str],
        division: Optional[int],
        label: str,
    ) -> ReserveCalculationResult:
        channel = CalculationFlow(channel) if channel is not None else self._default_flow
        if channel not in self._flows:
            raise InvalidInputError(f"Channel {channel.value} is not an enabled flow")

        registry = get_reserve_registry(division if division is not None else self._settings.RESERVE_DIVISION)
        trace = PoolTraceCollector(channel)
        bus = EventBus()
        bus.subscribe(PoolConsumedEvent, trace)
        if self._bus.has_subscribers():
            bus.subscribe(CalculationEvent, self._bus.publish)

        engine = ReserveCalculationEngine(
            registry,
            flows=self._flows,
            scheduling=self._scheduling,
            default_flow=self._default_flow,
            event_bus=bus,
        )
        context = CalculationContext(values, strict=self._settings.RESERVE_STRICT_MODE)
        try:
            engine.calculate(context, self._modifier_sets(channel, modifiers, buyer_class))
        except ReserveCalcException as exc:
            logger.warning("Reserve calculation failed for %s: %s", label, exc, extra={"error": exc.to_dict()})
            raise

        logger.info("Reserve calculation for %s on channel %s", label, channel.value)
        return self._build_result(context, channel, trace)

    def _modifier_sets(
        self,
        channel: CalculationFlow,
        modifiers: Mapping[str, Any],
        buyer_class: Optional[str],
    ) -> List[ModifierSet]:
        """Buyer class applies to every flow; request modifiers only to the requested channel."""
        sets = []
        for flow in self._flows:
            scoped: Dict[str, Any] = {BUYER_CLASS: buyer_class} if buyer_class else {}
            if flow is channel:
                scoped.update(modifiers)
            sets.append(ModifierSet(flow, scoped))
        return sets

    def _build_result(
        self,
        context: CalculationContext,
        channel: CalculationFlow,
        trace: PoolTraceCollector,
    ) -> ReserveCalculationResult:
        view = context.get_all(channel)
        constraints = []
        for reservation in RESERVATION_PRIORITY:
            constraint = view.get(reservation.constraint, ZERO)
            constraints.append(ConstraintSummary(
                reservation=reservation.key,
                requested_field=reservation.requested.value,
                requested=view.get(reservation.requested, ZERO),
                actual=view.get(reservation.actual, ZERO),
                constraint=constraint,
                is_short=constraint > ZERO,
            ))

        return ReserveCalculationResult(
            channel=channel,
            values={field.value: value for field, value in context.get_all().items()},
            flows={
                flow.value: {field.value: value for field, value in context.get_all(flow).items()}
                for flow in self._flows
            },
            key_metrics={field.value: view.get(field, ZERO) for field in KEY_METRICS},
            constraints=constraints,
            running_pool=trace.entries,
        )

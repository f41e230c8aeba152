"""
Reserve Calculation Engine

Drives every flow through the step registry and reconciles the per-flow results
into canonical context values.

Two scheduling modes:

- dependency: runs the registry's topological batches; each field is evaluated
  for every flow with that flow's variant, then reconciled.
- positional: walks the per-flow step lists index by index and batches whatever
  sits at the same position. Correctness depends on registration order.
"""
import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from skuloc_reserve.calc.context import CalculationContext
from skuloc_reserve.calc.fields import CalculationFlow, ReserveField
from skuloc_reserve.calc.modifiers import ModifierSet
from skuloc_reserve.calc.registry import StepRegistry
from skuloc_reserve.calc.steps import CalcStep, StepOutcome
from skuloc_reserve.core.exceptions import EngineCheckError, RegistryError
from skuloc_reserve.utils.events import (
    CalculationCompletedEvent,
    CanonicalValueResolvedEvent,
    EventBus,
    PoolConsumedEvent,
    StepEvaluatedEvent,
    get_event_bus,
)

logger = logging.getLogger(__name__)

ContextCheck = Callable[[CalculationContext], bool]


class SchedulingMode(str, Enum):
    DEPENDENCY = "dependency"
    POSITIONAL = "positional"


class ReserveCalculationEngine:

    def __init__(
        self,
        registry: StepRegistry,
        flows: Optional[Sequence[CalculationFlow]] = None,
        scheduling: SchedulingMode = SchedulingMode.DEPENDENCY,
        default_flow: CalculationFlow = CalculationFlow.OMS,
        event_bus: Optional[EventBus] = None,
        pre_check: Optional[ContextCheck] = None,
        post_check: Optional[ContextCheck] = None,
    ):
        self.registry = registry.freeze()
        self.flows: Tuple[CalculationFlow, ...] = tuple(flows or CalculationFlow)
        if not self.flows:
            raise RegistryError("Engine needs at least one flow")
        self.default_flow = CalculationFlow(default_flow)
        if self.default_flow not in self.flows:
            raise RegistryError(f"Default flow {self.default_flow.value} is not an engine flow")
        self.scheduling = SchedulingMode(scheduling)
        self._bus = event_bus if event_bus is not None else get_event_bus()
        self._pre_check = pre_check
        self._post_check = post_check

        self._flow_steps: Dict[CalculationFlow, List[CalcStep]] = {
            flow: self.registry.flow_steps(flow) for flow in self.flows
        }

    # ── Public API ──────────────────────────────────────────────────────────

    def calculate(
        self,
        context: CalculationContext,
        modifiers: Iterable[ModifierSet] = (),
    ) -> CalculationContext:
        if self._pre_check is not None and not self._pre_check(context):
            raise EngineCheckError("Engine pre-check failed: required conditions not met.")

        modifier_sets = self._modifiers_by_flow(modifiers)
        if self.scheduling is SchedulingMode.POSITIONAL:
            batch_count = self._run_positional(context, modifier_sets)
        else:
            batch_count = self._run_dependency(context, modifier_sets)

        if self._post_check is not None and not self._post_check(context):
            raise EngineCheckError("Engine post-check failed: validation conditions not met.")

        logger.info(
            "Reserve calculation completed",
            extra={
                "scheduling": self.scheduling.value,
                "flows": [flow.value for flow in self.flows],
                "batches": batch_count,
            },
        )
        if self._bus.has_subscribers():
            self._bus.publish(CalculationCompletedEvent(
                scheduling=self.scheduling.value,
                flows=[flow.value for flow in self.flows],
                batches=batch_count,
                fields=len(context.get_all()),
            ))
        return context

    def flow_steps(self, flow: CalculationFlow) -> List[CalcStep]:
        return list(self._flow_steps[flow])

    # ── Scheduling ──────────────────────────────────────────────────────────

    def _run_dependency(self, context: CalculationContext, modifier_sets: Dict[CalculationFlow, ModifierSet]) -> int:
        batches = self.registry.batches()
        for batch_index, batch in enumerate(batches):
            logger.debug("Batch %d: %s", batch_index, [entry.field.value for entry in batch])
            for entry in batch:
                outcomes = [
                    self._execute(entry.step_for(flow), context, flow, modifier_sets[flow], batch_index)
                    for flow in self.flows
                ]
                self._reconcile(context, entry.field, entry.writes, outcomes)
        return len(batches)

    def _run_positional(self, context: CalculationContext, modifier_sets: Dict[CalculationFlow, ModifierSet]) -> int:
        max_len = max(len(steps) for steps in self._flow_steps.values())
        for index in range(max_len):
            batch = [
                (flow, self._flow_steps[flow][index])
                for flow in self.flows
                if index < len(self._flow_steps[flow])
            ]
            outcomes = [
                self._execute(step, context, flow, modifier_sets[flow], index)
                for flow, step in batch
            ]
            # condition lookup keys on the first step's field
            first = batch[0][1]
            self._reconcile(context, first.field, first.writes, outcomes)
        return max_len

    # ── Internals ───────────────────────────────────────────────────────────

    def _modifiers_by_flow(self, modifiers: Iterable[ModifierSet]) -> Dict[CalculationFlow, ModifierSet]:
        by_flow: Dict[CalculationFlow, ModifierSet] = {}
        for modifier_set in modifiers:
            if modifier_set.channel in by_flow:
                raise EngineCheckError(f"Duplicate modifier set for channel {modifier_set.channel.value}")
            by_flow[modifier_set.channel] = modifier_set
        for flow in self.flows:
            by_flow.setdefault(flow, ModifierSet.empty(flow))
        return by_flow

    def _execute(
        self,
        step: CalcStep,
        context: CalculationContext,
        flow: CalculationFlow,
        modifiers: ModifierSet,
        batch_index: int,
    ) -> StepOutcome:
        outcome = step.apply(context, flow, modifiers)
        if self._bus.has_subscribers():
            self._bus.publish(StepEvaluatedEvent(
                batch_index=batch_index,
                field=outcome.field.value,
                flow=flow.value,
                step_type=type(step).__name__,
                before=outcome.before,
                after=outcome.value,
            ))
            if outcome.resolution is not None:
                resolution = outcome.resolution
                self._bus.publish(PoolConsumedEvent(
                    reservation=resolution.reservation.key,
                    flow=flow.value,
                    requested=resolution.requested,
                    pool_before=resolution.pool_before,
                    actual=resolution.actual,
                    constraint=resolution.constraint,
                    pool_after=resolution.pool_after,
                ))
        return outcome

    def _reconcile(
        self,
        context: CalculationContext,
        field: ReserveField,
        writes: Sequence[ReserveField],
        outcomes: List[StepOutcome],
    ) -> None:
        """Store the canonical value of every field the batch wrote."""
        flows = [outcome.flow for outcome in outcomes]
        condition = self.registry.condition_for(field)
        for written in writes:
            flow_values = {flow: context.get(written, flow) for flow in flows if context.has(written, flow)}
            if not flow_values:
                continue
            if condition is not None and written is field:
                value = condition.resolve(flow_values)
            elif self.default_flow in flow_values:
                value = flow_values[self.default_flow]
            else:
                value = next(iter(flow_values.values()))
            context.put(written, value)
            if self._bus.has_subscribers():
                self._bus.publish(CanonicalValueResolvedEvent(
                    field=written.value,
                    flow_values={flow.value: v for flow, v in flow_values.items()},
                    value=value,
                    by_condition=condition is not None and written is field,
                ))

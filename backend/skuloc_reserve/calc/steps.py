"""
Calculation Steps — GoF Strategy Pattern

Each step computes exactly one target field for one flow:

- ConstantStep:     writes a fixed literal
- PassThroughStep:  re-writes a value the caller already seeded
- FormulaStep:      pure function of (dependency values, modifier set)
- ReservationStep:  constraint/actual resolution against the running pool

A step registered for a specific flow in the registry acts as that flow's
override. Steps hold no per-request state and are shared by every request.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence, Tuple

from skuloc_reserve.calc.constraints import ConstraintResolver, ReservationType, Resolution
from skuloc_reserve.calc.context import CalculationContext, to_decimal
from skuloc_reserve.calc.fields import CalculationFlow, FieldLike, ReserveField, field_for
from skuloc_reserve.calc.modifiers import ModifierSet
from skuloc_reserve.core.exceptions import CalculationFailure, MissingValueError, UnknownFieldError

Formula = Callable[[Mapping[ReserveField, Decimal], ModifierSet], Decimal]
ConditionRule = Callable[[Mapping[CalculationFlow, Decimal]], Decimal]

# errors that already describe the problem and pass through unwrapped
_PROPAGATED = (CalculationFailure, MissingValueError, UnknownFieldError)


@dataclass(frozen=True)
class StepOutcome:
    field: ReserveField
    flow: CalculationFlow
    before: Decimal
    value: Decimal
    resolution: Optional[Resolution] = None


class CalcStep(ABC):

    def __init__(self, field: FieldLike, dependencies: Sequence[FieldLike] = ()):
        self.field = field_for(field)
        self.dependencies: Tuple[ReserveField, ...] = tuple(field_for(dep) for dep in dependencies)

    @property
    def produces(self) -> Tuple[ReserveField, ...]:
        """Fields other steps may depend on."""
        return (self.field,)

    @property
    def writes(self) -> Tuple[ReserveField, ...]:
        """Every field this step writes, including bookkeeping fields."""
        return self.produces

    def apply(
        self,
        context: CalculationContext,
        flow: CalculationFlow,
        modifiers: ModifierSet,
    ) -> StepOutcome:
        before = context.get(self.field, flow) if context.has(self.field, flow) else Decimal("0")
        try:
            value, resolution = self.compute(context, flow, modifiers)
            value = to_decimal(value)
        except _PROPAGATED:
            raise
        except Exception as exc:
            raise CalculationFailure(self.field, exc, flow) from exc
        context.put(self.field, value, flow)
        return StepOutcome(self.field, flow, before, value, resolution)

    @abstractmethod
    def compute(
        self,
        context: CalculationContext,
        flow: CalculationFlow,
        modifiers: ModifierSet,
    ) -> Tuple[Decimal, Optional[Resolution]]:
        ...

    def __repr__(self) -> str:
        deps = ", ".join(dep.value for dep in self.dependencies)
        return f"{type(self).__name__}({self.field.value}, deps=[{deps}])"


class ConstantStep(CalcStep):

    def __init__(self, field: FieldLike, value: Decimal):
        super().__init__(field)
        self.value = to_decimal(value)

    def compute(self, context, flow, modifiers):
        return self.value, None


class PassThroughStep(CalcStep):
    """The caller seeded the value; write it back so every flow sees it in history."""

    def compute(self, context, flow, modifiers):
        return context.get(self.field, flow), None


class FormulaStep(CalcStep):

    def __init__(self, field: FieldLike, dependencies: Sequence[FieldLike], formula: Formula):
        super().__init__(field, dependencies)
        self.formula = formula

    def compute(self, context, flow, modifiers):
        inputs = MappingProxyType({dep: context.get(dep, flow) for dep in self.dependencies})
        result = self.formula(inputs, modifiers)
        if result is None:
            raise TypeError(f"formula for {self.field.value} returned None")
        return result, None


class ReservationStep(CalcStep):
    """
    Resolves one reservation type against the running pool.

    Target is the constraint field; the actual field and RUNNING_AFS are written
    alongside it. ``pool_source`` rebases the pool on another field (e.g. INITAFS,
    UNCOMAFS); otherwise the pool left in RUNNING_AFS by ``after`` is consumed.
    """

    def __init__(
        self,
        reservation: ReservationType,
        pool_source: Optional[FieldLike] = None,
        after: Optional[ReservationType] = None,
    ):
        if pool_source is None and after is None:
            raise ValueError(f"{reservation.key}: pool_source or after is required")
        self.reservation = reservation
        self.pool_source = field_for(pool_source) if pool_source is not None else None
        self.after = after
        ordering = self.pool_source if self.pool_source is not None else after.actual
        super().__init__(reservation.constraint, (reservation.requested, ordering))

    @property
    def produces(self) -> Tuple[ReserveField, ...]:
        return (self.reservation.constraint, self.reservation.actual)

    @property
    def writes(self) -> Tuple[ReserveField, ...]:
        return self.produces + (ReserveField.RUNNING_AFS,)

    def compute(self, context, flow, modifiers):
        requested = context.get(self.reservation.requested, flow)
        pool_field = self.pool_source or ReserveField.RUNNING_AFS
        pool = context.get(pool_field, flow)
        resolution = ConstraintResolver.resolution(self.reservation, requested, pool)
        context.put(self.reservation.actual, resolution.actual, flow)
        context.put(ReserveField.RUNNING_AFS, resolution.pool_after, flow)
        return resolution.constraint, resolution


class ContextCondition:
    """Reconciles per-flow values of one field into its canonical value."""

    def __init__(self, field: FieldLike, rule: ConditionRule, description: str = ""):
        self.field = field_for(field)
        self.rule = rule
        self.description = description

    def resolve(self, flow_values: Mapping[CalculationFlow, Decimal]) -> Decimal:
        try:
            return to_decimal(self.rule(MappingProxyType(dict(flow_values))))
        except _PROPAGATED:
            raise
        except Exception as exc:
            raise CalculationFailure(self.field, exc) from exc

    def __repr__(self) -> str:
        return f"ContextCondition({self.field.value})"


def prefer_alternate(
    alternate: CalculationFlow = CalculationFlow.JEI,
    default: CalculationFlow = CalculationFlow.OMS,
) -> ConditionRule:
    """Use the alternate flow's value when it is positive and differs from the default's."""

    def rule(values: Mapping[CalculationFlow, Decimal]) -> Decimal:
        zero = Decimal("0")
        alt = values.get(alternate, zero)
        if default in values:
            base = values[default]
        else:
            # default flow not enabled; fall back to the first flow that ran
            base = next(iter(values.values()), zero)
        return alt if alt > zero and alt != base else base

    return rule

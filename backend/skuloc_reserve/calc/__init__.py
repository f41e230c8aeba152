# Calculation core — field catalog, steps, registry and engine
from skuloc_reserve.calc.fields import CalculationFlow, FieldCategory, ReserveField, field_for
from skuloc_reserve.calc.context import CalculationContext
from skuloc_reserve.calc.modifiers import ModifierSet, ModifierValue, ModifierKind
from skuloc_reserve.calc.constraints import ConstraintResolver, ReservationType, Resolution, RunningPool
from skuloc_reserve.calc.steps import (
    CalcStep,
    ConstantStep,
    ContextCondition,
    FormulaStep,
    PassThroughStep,
    ReservationStep,
)
from skuloc_reserve.calc.registry import FieldEntry, StepRegistry
from skuloc_reserve.calc.engine import ReserveCalculationEngine, SchedulingMode
from skuloc_reserve.calc.reserve_steps import build_reserve_registry

__all__ = [
    "CalculationFlow",
    "FieldCategory",
    "ReserveField",
    "field_for",
    "CalculationContext",
    "ModifierSet",
    "ModifierValue",
    "ModifierKind",
    "ConstraintResolver",
    "ReservationType",
    "Resolution",
    "RunningPool",
    "CalcStep",
    "ConstantStep",
    "ContextCondition",
    "FormulaStep",
    "PassThroughStep",
    "ReservationStep",
    "FieldEntry",
    "StepRegistry",
    "ReserveCalculationEngine",
    "SchedulingMode",
    "build_reserve_registry",
]

"""
Reserve step table — the static registry wiring for SKULOC reserve calculation.

Registration order is a valid topological order, so positional and dependency
scheduling produce the same results for this table.
"""
from decimal import Decimal
from typing import Mapping

from skuloc_reserve.calc import constraints as rt
from skuloc_reserve.calc.fields import CalculationFlow, FieldCategory, ReserveField as F, fields_in
from skuloc_reserve.calc.modifiers import ModifierSet
from skuloc_reserve.calc.registry import StepRegistry
from skuloc_reserve.calc.steps import (
    ConstantStep,
    ContextCondition,
    FormulaStep,
    PassThroughStep,
    ReservationStep,
    prefer_alternate,
)

ZERO = Decimal("0")
DEFAULT_DIVISION = Decimal("30")

SAFETY_BUFFER = "safety_buffer"
BUYER_CLASS = "buyer_class"
# buyer classes whose JEI supply is withheld from the OMS final quantity
OMS_FINAL_BLOCKED_BUYER_CLASSES = frozenset({"D"})

Inputs = Mapping[F, Decimal]


# ── Formulas ─────────────────────────────────────────────────────────────────

def initial_afs(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return (
        inputs[F.ONHAND]
        - inputs[F.ROHM]
        - inputs[F.LOST]
        - inputs[F.DMG]
        - max(inputs[F.OOBADJ], ZERO)
    )


def initial_afs_jei(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return inputs[F.ONHAND] - inputs[F.LOST] - modifiers.decimal(SAFETY_BUFFER)


def uncommitted_afs(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return max(inputs[F.INITAFS] - inputs[F.SNBA] - inputs[F.DTCOA] - inputs[F.ROHPA], ZERO)


def adjusted_outbound(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    # outbound already covered by dotcom reserves is not requested again
    return max(inputs[F.DOTOUTB] - (inputs[F.DOTHRYA] + inputs[F.DOTRSVA]), ZERO)


def adjusted_need(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return max(inputs[F.NEED] - (inputs[F.RETHRYA] + inputs[F.RETRSVA]), ZERO)


def committed(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return inputs[F.SNBA] + inputs[F.DTCOA] + inputs[F.ROHPA]


def dotcom_ats(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return inputs[F.DOTHRYA] + inputs[F.DOTRSVA] + inputs[F.AOUTBVA]


def retail_ats(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return inputs[F.RETHRYA] + inputs[F.RETRSVA] + inputs[F.NEEDA]


def uncommitted_hard_reserve(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    return inputs[F.DOTHRNA] + inputs[F.RETHRNA] + inputs[F.HLDHRA]


RESERVE_ACTUALS = tuple(reservation.actual for reservation in rt.RESERVATION_PRIORITY
                        if reservation not in rt.COMMITMENTS)


def uncommitted(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    reserved = sum((inputs[field] for field in RESERVE_ACTUALS), ZERO)
    return max(inputs[F.INITAFS] - inputs[F.COMMITTED] - reserved, ZERO)


def oms_supply(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    if inputs[F.INITAFS] < ZERO:
        return ZERO
    return inputs[F.DOTATS] + inputs[F.DTCOA]


def oms_supply_jei(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    if inputs[F.INITAFS] < ZERO:
        return ZERO
    return inputs[F.DOTATS] + inputs[F.DTCOA] + inputs[F.SNBA] + inputs[F.DOTHRNA]


def retail_final(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    if inputs[F.INITAFS] < ZERO:
        return ZERO
    return inputs[F.RETAILATS]


def retail_final_jei(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    # JEI reports the deficit itself instead of flooring it
    if inputs[F.INITAFS] < ZERO:
        return inputs[F.INITAFS]
    return inputs[F.RETAILATS] + inputs[F.RETHRNA] + inputs[F.ROHPA] + inputs[F.HLDHRA]


def retail_final_frm(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    if inputs[F.INITAFS] < ZERO:
        return ZERO
    return inputs[F.RETAILATS] + inputs[F.AOUTBVA]


def oms_final_jei(inputs: Inputs, modifiers: ModifierSet) -> Decimal:
    if modifiers.text(BUYER_CLASS).upper() in OMS_FINAL_BLOCKED_BUYER_CLASSES:
        return ZERO
    return inputs[F.OMSSUP]


# ── Registry ─────────────────────────────────────────────────────────────────

def build_reserve_registry(division: Decimal = DEFAULT_DIVISION) -> StepRegistry:
    """Build and freeze the full reserve calculation registry."""
    registry = StepRegistry()
    jei, frm = CalculationFlow.JEI, CalculationFlow.FRM

    registry.add(ConstantStep(F.DIV, division))
    registry.add(PassThroughStep(F.LOC))
    registry.add(PassThroughStep(F.SKU))
    for field in fields_in(FieldCategory.INPUT):
        registry.add(PassThroughStep(field))

    registry.add(
        FormulaStep(F.INITAFS, [F.ONHAND, F.ROHM, F.LOST, F.DMG, F.OOBADJ], initial_afs),
        overrides={jei: FormulaStep(F.INITAFS, [F.ONHAND, F.LOST], initial_afs_jei)},
        condition=ContextCondition(
            F.INITAFS,
            prefer_alternate(jei, CalculationFlow.OMS),
            "JEI initial AFS wins when positive and different from OMS",
        ),
    )

    # commitments consume from the initial AFS
    registry.add(ReservationStep(rt.SNB, pool_source=F.INITAFS))
    registry.add(ReservationStep(rt.DTCO, after=rt.SNB))
    registry.add(ReservationStep(rt.ROHP, after=rt.DTCO))
    registry.add(FormulaStep(F.UNCOMAFS, [F.INITAFS, F.SNBA, F.DTCOA, F.ROHPA], uncommitted_afs))

    # hard and soft reserves consume from the uncommitted AFS
    registry.add(ReservationStep(rt.DOTHRY, pool_source=F.UNCOMAFS))
    registry.add(ReservationStep(rt.DOTHRN, after=rt.DOTHRY))
    registry.add(ReservationStep(rt.RETHRY, after=rt.DOTHRN))
    registry.add(ReservationStep(rt.RETHRN, after=rt.RETHRY))
    registry.add(ReservationStep(rt.HLDHR, after=rt.RETHRN))
    registry.add(ReservationStep(rt.DOTRSV, after=rt.HLDHR))
    registry.add(ReservationStep(rt.RETRSV, after=rt.DOTRSV))

    registry.add(FormulaStep(F.AOUTBV, [F.DOTOUTB, F.DOTHRYA, F.DOTRSVA], adjusted_outbound))
    registry.add(ReservationStep(rt.AOUTBV, after=rt.RETRSV))
    registry.add(FormulaStep(F.ANEED, [F.NEED, F.RETHRYA, F.RETRSVA], adjusted_need))
    registry.add(ReservationStep(rt.NEED, after=rt.AOUTBV))

    registry.add(FormulaStep(F.COMMITTED, [F.SNBA, F.DTCOA, F.ROHPA], committed))
    registry.add(FormulaStep(F.DOTATS, [F.DOTHRYA, F.DOTRSVA, F.AOUTBVA], dotcom_ats))
    registry.add(FormulaStep(F.RETAILATS, [F.RETHRYA, F.RETRSVA, F.NEEDA], retail_ats))
    registry.add(FormulaStep(F.UNCOMMHR, [F.DOTHRNA, F.RETHRNA, F.HLDHRA], uncommitted_hard_reserve))
    registry.add(FormulaStep(F.UNCOMMIT, [F.INITAFS, F.COMMITTED, *RESERVE_ACTUALS], uncommitted))

    registry.add(
        FormulaStep(F.OMSSUP, [F.INITAFS, F.DOTATS, F.DTCOA], oms_supply),
        overrides={
            jei: FormulaStep(F.OMSSUP, [F.INITAFS, F.DOTATS, F.DTCOA, F.SNBA, F.DOTHRNA], oms_supply_jei),
        },
    )
    registry.add(
        FormulaStep(F.RETFINAL, [F.INITAFS, F.RETAILATS], retail_final),
        overrides={
            jei: FormulaStep(F.RETFINAL, [F.INITAFS, F.RETAILATS, F.RETHRNA, F.ROHPA, F.HLDHRA], retail_final_jei),
            frm: FormulaStep(F.RETFINAL, [F.INITAFS, F.RETAILATS, F.AOUTBVA], retail_final_frm),
        },
    )
    registry.add(
        ConstantStep(F.OMSFINAL, ZERO),
        overrides={jei: FormulaStep(F.OMSFINAL, [F.OMSSUP], oms_final_jei)},
    )
    return registry.freeze()

from decimal import Decimal

import pytest

from skuloc_reserve.calc.context import CalculationContext
from skuloc_reserve.calc.engine import ReserveCalculationEngine, SchedulingMode
from skuloc_reserve.calc.fields import CalculationFlow, ReserveField as F
from skuloc_reserve.calc.modifiers import ModifierSet
from skuloc_reserve.calc.registry import StepRegistry
from skuloc_reserve.calc.steps import FormulaStep, PassThroughStep
from skuloc_reserve.core.exceptions import (
    CalculationFailure,
    EngineCheckError,
    MissingValueError,
    ModifierTypeError,
    RegistryError,
)
from skuloc_reserve.utils.events import (
    CalculationCompletedEvent,
    CalculationEvent,
    PoolConsumedEvent,
    StepEvaluatedEvent,
)

D = Decimal
OMS, JEI, FRM = CalculationFlow.OMS, CalculationFlow.JEI, CalculationFlow.FRM


def _run(engine, inputs, *modifiers):
    return engine.calculate(CalculationContext(inputs), modifiers)


def test_initial_afs_for_default_flow(engine, scenario_inputs) -> None:
    context = _run(engine, scenario_inputs)
    assert context.get(F.INITAFS, OMS) == D("83")
    assert context.get(F.INITAFS, FRM) == D("83")


def test_alternate_flow_override_wins_canonical_value(engine, scenario_inputs) -> None:
    context = _run(engine, scenario_inputs)
    assert context.get(F.INITAFS, JEI) == D("95")
    assert context.get(F.INITAFS) == D("95")


def test_equal_flow_values_keep_default(engine) -> None:
    context = _run(engine, {F.ONHAND: D("100"), F.LOST: D("5")})
    assert context.flow_values(F.INITAFS) == {OMS: D("95"), JEI: D("95"), FRM: D("95")}
    assert context.get(F.INITAFS) == D("95")


def test_safety_buffer_modifier_scopes_jei_only(engine, scenario_inputs) -> None:
    context = _run(engine, scenario_inputs, ModifierSet(JEI, {"safety_buffer": 20}))
    assert context.get(F.INITAFS, JEI) == D("75")
    assert context.get(F.INITAFS, OMS) == D("83")
    assert context.get(F.INITAFS) == D("75")


def test_unset_inputs_read_zero(engine) -> None:
    context = _run(engine, {})
    assert context.get(F.INITAFS) == D("0")
    assert context.get(F.UNCOMMIT) == D("0")
    assert context.get(F.DIV) == D("30")


def test_reservations_consume_in_priority_order(engine) -> None:
    context = _run(engine, {F.ONHAND: D("50"), F.SNB: D("30"), F.DTCO: D("40")})

    assert context.get(F.SNBA, OMS) == D("30")
    assert context.get(F.SNBX, OMS) == D("0")
    assert context.get(F.DTCOA, OMS) == D("20")
    assert context.get(F.DTCOX, OMS) == D("20")
    assert context.get(F.UNCOMAFS, OMS) == D("0")
    assert context.get(F.COMMITTED) == D("50")


def test_actual_plus_constraint_matches_request(engine) -> None:
    inputs = {
        F.ONHAND: D("120"), F.ROHM: D("4"), F.SNB: D("10"), F.DTCO: D("25"), F.ROHP: D("15"),
        F.DOTHRY: D("20"), F.RETHRN: D("9"), F.HLDHR: D("12"), F.DOTRSV: D("30"),
        F.RETRSV: D("18"), F.DOTOUTB: D("60"), F.NEED: D("40"),
    }
    context = _run(engine, inputs)
    pairs = [
        (F.SNB, F.SNBA, F.SNBX), (F.DTCO, F.DTCOA, F.DTCOX), (F.ROHP, F.ROHPA, F.ROHPX),
        (F.DOTHRY, F.DOTHRYA, F.DOTHRYX), (F.RETHRN, F.RETHRNA, F.RETHRNX),
        (F.HLDHR, F.HLDHRA, F.HLDHRX), (F.DOTRSV, F.DOTRSVA, F.DOTRSVX),
        (F.RETRSV, F.RETRSVA, F.RETRSVX), (F.AOUTBV, F.AOUTBVA, F.AOUTBVX),
        (F.ANEED, F.NEEDA, F.NEEDX),
    ]
    for flow in CalculationFlow:
        for requested, actual, constraint in pairs:
            assert context.get(actual, flow) + context.get(constraint, flow) == context.get(requested, flow)
        assert context.get(F.RUNNING_AFS, flow) >= 0


def test_exactly_one_variant_runs_per_flow() -> None:
    calls = []

    def tracked(name):
        def formula(inputs, modifiers):
            calls.append((name, modifiers.channel))
            return inputs[F.ONHAND]
        return formula

    registry = StepRegistry()
    registry.add(PassThroughStep(F.ONHAND))
    registry.add(
        FormulaStep(F.INITAFS, [F.ONHAND], tracked("default")),
        overrides={JEI: FormulaStep(F.INITAFS, [F.ONHAND], tracked("jei"))},
    )
    engine = ReserveCalculationEngine(registry)
    _run(engine, {F.ONHAND: D("1")})

    assert sorted(calls) == [("default", FRM), ("default", OMS), ("jei", JEI)]


def test_calculation_is_idempotent(engine, scenario_inputs) -> None:
    inputs = dict(scenario_inputs, **{F.SNB.name: D("20")})
    first = _run(engine, inputs)
    second = _run(engine, inputs)

    assert first.get_all() == second.get_all()
    for flow in CalculationFlow:
        assert first.get_all(flow) == second.get_all(flow)


@pytest.mark.parametrize(
    "inputs",
    [
        {F.ONHAND: D("626"), F.SNB: D("1"), F.DOTRSV: D("255"), F.RETRSV: D("84"),
         F.DOTOUTB: D("255"), F.NEED: D("84")},
        {F.ONHAND: D("40"), F.ROHM: D("50"), F.SNB: D("5"), F.NEED: D("3")},
        {F.ONHAND: D("90"), F.DTCO: D("70"), F.ROHP: D("30"), F.RETHRY: D("12"), F.NEED: D("20")},
    ],
)
def test_positional_and_dependency_scheduling_agree(registry, event_bus, inputs) -> None:
    dependency = ReserveCalculationEngine(registry, event_bus=event_bus)
    positional = ReserveCalculationEngine(registry, scheduling=SchedulingMode.POSITIONAL, event_bus=event_bus)

    by_dependency = _run(dependency, inputs)
    by_position = _run(positional, inputs)

    assert by_dependency.get_all() == by_position.get_all()
    for flow in CalculationFlow:
        assert by_dependency.get_all(flow) == by_position.get_all(flow)


def test_positional_scheduling_depends_on_registration_order(event_bus) -> None:
    registry = StepRegistry()
    registry.add(FormulaStep(F.UNCOMAFS, [F.INITAFS], lambda inputs, m: inputs[F.INITAFS] * 2))
    registry.add(FormulaStep(F.INITAFS, [F.ONHAND], lambda inputs, m: inputs[F.ONHAND] + 1))
    registry.add(PassThroughStep(F.ONHAND))

    dependency = ReserveCalculationEngine(registry, event_bus=event_bus)
    positional = ReserveCalculationEngine(registry, scheduling="positional", event_bus=event_bus)

    assert _run(dependency, {F.ONHAND: D("10")}).get(F.UNCOMAFS) == D("22")
    assert _run(positional, {F.ONHAND: D("10")}).get(F.UNCOMAFS) == D("0")


def test_strict_mode_raises_on_missing_input(engine) -> None:
    with pytest.raises(MissingValueError):
        engine.calculate(CalculationContext(strict=True))


def test_modifier_type_mismatch_aborts_calculation(engine, scenario_inputs) -> None:
    with pytest.raises(CalculationFailure) as exc_info:
        _run(engine, scenario_inputs, ModifierSet(JEI, {"safety_buffer": "ten"}))

    assert exc_info.value.field is F.INITAFS
    assert exc_info.value.flow is JEI
    assert isinstance(exc_info.value.cause, ModifierTypeError)


def test_formula_failure_aborts_calculation(event_bus) -> None:
    registry = StepRegistry()
    registry.add(PassThroughStep(F.ONHAND))
    registry.add(FormulaStep(F.INITAFS, [F.ONHAND], lambda inputs, m: inputs[F.ONHAND] / D("0")))
    engine = ReserveCalculationEngine(registry, event_bus=event_bus)

    with pytest.raises(CalculationFailure) as exc_info:
        _run(engine, {F.ONHAND: D("5")})
    assert exc_info.value.field is F.INITAFS


def test_pre_and_post_checks(registry, event_bus, scenario_inputs) -> None:
    rejecting = ReserveCalculationEngine(registry, event_bus=event_bus, pre_check=lambda context: False)
    with pytest.raises(EngineCheckError):
        _run(rejecting, scenario_inputs)

    validating = ReserveCalculationEngine(
        registry,
        event_bus=event_bus,
        post_check=lambda context: context.get(F.UNCOMMIT) >= 0,
    )
    assert _run(validating, scenario_inputs).get(F.UNCOMMIT) == D("83")


def test_duplicate_modifier_channel_is_rejected(engine) -> None:
    with pytest.raises(EngineCheckError):
        _run(engine, {}, ModifierSet(JEI), ModifierSet(JEI))


def test_default_flow_must_be_enabled(registry) -> None:
    with pytest.raises(RegistryError):
        ReserveCalculationEngine(registry, flows=[JEI, FRM], default_flow=OMS)


def test_single_flow_engine(registry, event_bus, scenario_inputs) -> None:
    engine = ReserveCalculationEngine(registry, flows=[FRM], default_flow=FRM, event_bus=event_bus)
    context = _run(engine, scenario_inputs)
    assert context.flows == [FRM]
    assert context.get(F.INITAFS) == D("83")


def test_outputs_use_default_flow_for_canonical_value(engine) -> None:
    context = _run(engine, {F.ONHAND: D("100"), F.SNB: D("10"), F.DOTHRN: D("5"), F.DOTOUTB: D("20")})

    assert context.get(F.OMSSUP, OMS) == D("20")
    assert context.get(F.OMSSUP, JEI) == D("35")
    assert context.get(F.OMSSUP) == D("20")
    assert context.get(F.OMSFINAL, OMS) == D("0")
    assert context.get(F.OMSFINAL, JEI) == D("35")


def test_buyer_class_d_blocks_jei_oms_final(engine) -> None:
    context = _run(
        engine,
        {F.ONHAND: D("100"), F.DOTOUTB: D("20")},
        ModifierSet(JEI, {"buyer_class": "d"}),
    )
    assert context.get(F.OMSSUP, JEI) == D("20")
    assert context.get(F.OMSFINAL, JEI) == D("0")


def test_negative_initial_afs(engine) -> None:
    context = _run(engine, {F.ONHAND: D("5"), F.LOST: D("10"), F.NEED: D("3")})

    assert context.get(F.INITAFS) == D("-5")
    assert context.get(F.NEEDX, OMS) == D("3")
    assert context.get(F.RETFINAL, OMS) == D("0")
    assert context.get(F.RETFINAL, FRM) == D("0")
    assert context.get(F.RETFINAL, JEI) == D("-5")
    assert context.get(F.UNCOMMIT) == D("0")


def test_events_are_published(registry, event_bus, scenario_inputs) -> None:
    received = []
    event_bus.subscribe(CalculationEvent, received.append)
    engine = ReserveCalculationEngine(registry, event_bus=event_bus)

    _run(engine, dict(scenario_inputs, SNB=D("30")))

    steps = [e for e in received if isinstance(e, StepEvaluatedEvent)]
    assert len(steps) == len(registry) * len(CalculationFlow)

    pool = [e for e in received if isinstance(e, PoolConsumedEvent) and e.flow == "OMS"]
    assert pool[0].reservation == "snb"
    assert pool[0].pool_before == D("83")
    assert pool[0].pool_after == D("53")
    assert len(pool) == 12

    completed = [e for e in received if isinstance(e, CalculationCompletedEvent)]
    assert len(completed) == 1
    assert completed[0].batches == len(registry.batches())
    assert completed[0].flows == ["OMS", "JEI", "FRM"]

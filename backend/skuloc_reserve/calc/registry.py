"""
Step Registry — the flow variant table.

One entry per target field, in registration order: a default step, optional
per-flow override steps and an optional context condition. ``freeze()`` checks
the dependency graph once and computes the topological batches the engine runs;
after that the registry is read-only and safe to share between requests.
"""
import logging
from dataclasses import dataclass, field as dataclass_field
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from skuloc_reserve.calc.fields import CalculationFlow, ReserveField
from skuloc_reserve.calc.steps import CalcStep, ContextCondition
from skuloc_reserve.core.exceptions import RegistryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldEntry:
    field: ReserveField
    default: CalcStep
    overrides: Mapping[CalculationFlow, CalcStep] = dataclass_field(default_factory=dict)
    condition: Optional[ContextCondition] = None

    def step_for(self, flow: CalculationFlow) -> CalcStep:
        """The override registered for ``flow``, else the default step. Never both."""
        return self.overrides.get(flow, self.default)

    @property
    def variants(self) -> List[CalcStep]:
        return [self.default, *self.overrides.values()]

    @property
    def dependencies(self) -> Tuple[ReserveField, ...]:
        seen: Dict[ReserveField, None] = {}
        for step in self.variants:
            for dep in step.dependencies:
                seen.setdefault(dep, None)
        return tuple(seen)

    @property
    def produces(self) -> Tuple[ReserveField, ...]:
        return self.default.produces

    @property
    def writes(self) -> Tuple[ReserveField, ...]:
        return self.default.writes


class StepRegistry:

    def __init__(self):
        self._entries: List[FieldEntry] = []
        self._by_field: Dict[ReserveField, FieldEntry] = {}
        self._producers: Dict[ReserveField, FieldEntry] = {}
        self._batches: Optional[List[List[FieldEntry]]] = None

    @property
    def frozen(self) -> bool:
        return self._batches is not None

    def add(
        self,
        default: CalcStep,
        overrides: Optional[Mapping[CalculationFlow, CalcStep]] = None,
        condition: Optional[ContextCondition] = None,
    ) -> FieldEntry:
        if self.frozen:
            raise RegistryError("Registry is frozen; steps cannot be added after startup")

        overrides = dict(overrides or {})
        for flow, step in overrides.items():
            if step.field is not default.field:
                raise RegistryError(
                    f"Override for {flow.value} targets {step.field.value}, expected {default.field.value}"
                )
            if step.produces != default.produces:
                raise RegistryError(f"Override for {flow.value} on {default.field.value} produces different fields")
        if condition is not None and condition.field is not default.field:
            raise RegistryError(
                f"Condition targets {condition.field.value}, expected {default.field.value}"
            )

        entry = FieldEntry(default.field, default, MappingProxyType(overrides), condition)
        for produced in entry.produces:
            if produced in self._producers:
                raise RegistryError(f"Field {produced.value} is already produced by another step")
        for produced in entry.produces:
            self._producers[produced] = entry

        self._entries.append(entry)
        self._by_field[entry.field] = entry
        return entry

    def freeze(self) -> "StepRegistry":
        if self.frozen:
            return self
        self._batches = self._topological_batches()
        logger.debug(
            "Step registry frozen: %d entries in %d batches", len(self._entries), len(self._batches)
        )
        return self

    def _topological_batches(self) -> List[List[FieldEntry]]:
        index = {id(entry): i for i, entry in enumerate(self._entries)}
        upstream: Dict[int, set] = {}
        for entry in self._entries:
            parents = set()
            for dep in entry.dependencies:
                producer = self._producers.get(dep)
                if producer is None:
                    raise RegistryError(
                        f"{entry.field.value} depends on {dep.value}, which no step produces"
                    )
                if producer is entry:
                    raise RegistryError(f"{entry.field.value} depends on its own output {dep.value}")
                parents.add(index[id(producer)])
            upstream[index[id(entry)]] = parents

        batches: List[List[FieldEntry]] = []
        done: set = set()
        remaining = list(range(len(self._entries)))
        while remaining:
            ready = [i for i in remaining if upstream[i] <= done]
            if not ready:
                cycle = ", ".join(self._entries[i].field.value for i in remaining)
                raise RegistryError(f"Dependency cycle among: {cycle}")
            batches.append([self._entries[i] for i in ready])
            done.update(ready)
            remaining = [i for i in remaining if i not in done]
        return batches

    def batches(self) -> List[List[FieldEntry]]:
        if self._batches is None:
            raise RegistryError("Registry must be frozen before it is scheduled")
        return [list(batch) for batch in self._batches]

    def flow_steps(self, flow: CalculationFlow) -> List[CalcStep]:
        """Registration-ordered step list for one flow."""
        return [entry.step_for(flow) for entry in self._entries]

    def entry(self, field: ReserveField) -> FieldEntry:
        try:
            return self._by_field[field]
        except KeyError:
            raise RegistryError(f"No step registered for {field.value}") from None

    def condition_for(self, field: ReserveField) -> Optional[ContextCondition]:
        entry = self._by_field.get(field)
        return entry.condition if entry else None

    @property
    def entries(self) -> List[FieldEntry]:
        return list(self._entries)

    @property
    def fields(self) -> List[ReserveField]:
        return [entry.field for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FieldEntry]:
        return iter(self._entries)

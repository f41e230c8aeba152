"""
Calculation Context — per-request store of field values.

Holds one canonical value per field plus per-flow values written while each flow
evaluates its steps. Reads fall back flow -> canonical -> zero; every write is
appended to the field's history.
"""
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from skuloc_reserve.calc.fields import CalculationFlow, FieldLike, ReserveField, field_for
from skuloc_reserve.core.exceptions import InvalidInputError, MissingValueError

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"Expected a decimal quantity, got {value!r}")
    if isinstance(value, Decimal):
        quantity = value
    else:
        try:
            quantity = Decimal(str(value))
        except ArithmeticError as exc:
            raise InvalidInputError(f"Expected a decimal quantity, got {value!r}") from exc
    if not quantity.is_finite():
        raise InvalidInputError(f"Quantity must be finite, got {value!r}")
    return quantity


class CalculationContext:

    def __init__(
        self,
        initial_values: Optional[Mapping[FieldLike, Any]] = None,
        strict: bool = False,
    ):
        self.strict = strict
        self._values: Dict[ReserveField, Decimal] = {}
        self._flow_values: Dict[CalculationFlow, Dict[ReserveField, Decimal]] = {}
        self._history: Dict[ReserveField, List[Tuple[Optional[CalculationFlow], Decimal]]] = {}
        for name, value in (initial_values or {}).items():
            self.put(name, value)

    def get(self, field: FieldLike, flow: Optional[CalculationFlow] = None) -> Decimal:
        field = field_for(field)
        if flow is not None:
            flow_values = self._flow_values.get(flow)
            if flow_values is not None and field in flow_values:
                return flow_values[field]
        if field in self._values:
            return self._values[field]
        if self.strict:
            raise MissingValueError(field, flow)
        return ZERO

    def put(self, field: FieldLike, value: Any, flow: Optional[CalculationFlow] = None) -> Decimal:
        field = field_for(field)
        value = to_decimal(value)
        if flow is None:
            self._values[field] = value
        else:
            self._flow_values.setdefault(flow, {})[field] = value
        self._history.setdefault(field, []).append((flow, value))
        return value

    def has(self, field: FieldLike, flow: Optional[CalculationFlow] = None) -> bool:
        field = field_for(field)
        if flow is not None and field in self._flow_values.get(flow, {}):
            return True
        return field in self._values

    def get_all(self, flow: Optional[CalculationFlow] = None) -> Dict[ReserveField, Decimal]:
        """Snapshot of canonical values, or of one flow's view when ``flow`` is given."""
        if flow is None:
            return dict(self._values)
        snapshot = dict(self._values)
        snapshot.update(self._flow_values.get(flow, {}))
        return snapshot

    def flow_values(self, field: FieldLike) -> Dict[CalculationFlow, Decimal]:
        field = field_for(field)
        return {
            flow: values[field]
            for flow, values in self._flow_values.items()
            if field in values
        }

    def history(self, field: FieldLike, flow: Optional[CalculationFlow] = None) -> List[Decimal]:
        field = field_for(field)
        entries = self._history.get(field, [])
        if flow is None:
            return [value for _, value in entries]
        return [value for entry_flow, value in entries if entry_flow is flow]

    @property
    def flows(self) -> List[CalculationFlow]:
        return list(self._flow_values)

    def __repr__(self) -> str:
        return f"CalculationContext(fields={len(self._values)}, flows={[f.value for f in self._flow_values]}, strict={self.strict})"

from decimal import Decimal

import pytest
from pydantic import ValidationError

from skuloc_reserve.calc.fields import FieldCategory, ReserveField, fields_in
from skuloc_reserve.core.exceptions import InvalidInputError, UnknownFieldError
from skuloc_reserve.schemas.reserve import InventoryRecord
from skuloc_reserve.services.initial_values import InitialValueSupplier


def test_from_record_maps_and_zero_fills() -> None:
    record = InventoryRecord(location=812, sku=100045, on_hand=Decimal("100"), damaged=Decimal("2"))
    values = InitialValueSupplier.from_record(record)

    assert values[ReserveField.ONHAND] == Decimal("100")
    assert values[ReserveField.DMG] == Decimal("2")
    assert values[ReserveField.LOC] == Decimal("812")
    assert values[ReserveField.NEED] == Decimal("0")
    assert ReserveField.DIV not in values
    assert set(fields_in(FieldCategory.INPUT)) <= set(values)


def test_from_record_seeds_division_when_given() -> None:
    values = InitialValueSupplier.from_record(InventoryRecord(division=45))
    assert values[ReserveField.DIV] == Decimal("45")


def test_record_rejects_negative_quantities() -> None:
    with pytest.raises(ValidationError):
        InventoryRecord(on_hand=Decimal("-1"))


def test_record_allows_negative_oob_adjustment() -> None:
    values = InitialValueSupplier.from_record(InventoryRecord(oob_adjustment=Decimal("-5")))
    assert values[ReserveField.OOBADJ] == Decimal("-5")


def test_from_mapping_uses_field_names() -> None:
    values = InitialValueSupplier.from_mapping({"ONHAND": "626", "SNB": 1, "LOC": 7})
    assert values[ReserveField.ONHAND] == Decimal("626")
    assert values[ReserveField.SNB] == Decimal("1")
    assert values[ReserveField.LOC] == Decimal("7")
    assert values[ReserveField.LOST] == Decimal("0")


def test_from_mapping_rejects_unknown_names() -> None:
    with pytest.raises(UnknownFieldError):
        InitialValueSupplier.from_mapping({"ONHND": 5})


def test_from_mapping_rejects_calculated_fields() -> None:
    with pytest.raises(InvalidInputError):
        InitialValueSupplier.from_mapping({"INITAFS": 5})


def test_from_mapping_rejects_negative_inputs() -> None:
    with pytest.raises(InvalidInputError):
        InitialValueSupplier.from_mapping({"SNB": -1})
    assert InitialValueSupplier.from_mapping({"OOBADJ": -3})[ReserveField.OOBADJ] == Decimal("-3")


def test_from_mapping_treats_null_as_zero() -> None:
    assert InitialValueSupplier.from_mapping({"ONHAND": None})[ReserveField.ONHAND] == Decimal("0")


@pytest.mark.parametrize("value", ["NaN", "Infinity"])
def test_from_mapping_rejects_non_finite_quantities(value) -> None:
    with pytest.raises(InvalidInputError):
        InitialValueSupplier.from_mapping({"ONHAND": value})

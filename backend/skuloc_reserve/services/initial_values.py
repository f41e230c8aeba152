"""
Initial Value Supplier — seeds a calculation context from a SKULOC record.

Every input field gets a value (missing quantities become zero); quantities must
be non-negative except the out-of-balance adjustment, which may go either way.
"""
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from skuloc_reserve.calc.context import to_decimal
from skuloc_reserve.calc.fields import FieldCategory, ReserveField, field_for, fields_in
from skuloc_reserve.core.exceptions import InvalidInputError
from skuloc_reserve.schemas.reserve import InventoryRecord

ZERO = Decimal("0")

SIGNED_FIELDS = frozenset({ReserveField.OOBADJ})
SEEDABLE_CATEGORIES = frozenset({FieldCategory.KEY, FieldCategory.INPUT})

RECORD_FIELD_MAP: Dict[str, ReserveField] = {
    "division": ReserveField.DIV,
    "location": ReserveField.LOC,
    "sku": ReserveField.SKU,
    "on_hand": ReserveField.ONHAND,
    "merchandise_reserve": ReserveField.ROHM,
    "lost": ReserveField.LOST,
    "damaged": ReserveField.DMG,
    "oob_adjustment": ReserveField.OOBADJ,
    "retail_pick_reserve": ReserveField.ROHP,
    "ship_not_billed": ReserveField.SNB,
    "open_customer_orders": ReserveField.DTCO,
    "dot_hard_reserve_ats_yes": ReserveField.DOTHRY,
    "dot_hard_reserve_ats_no": ReserveField.DOTHRN,
    "ret_hard_reserve_ats_yes": ReserveField.RETHRY,
    "ret_hard_reserve_ats_no": ReserveField.RETHRN,
    "held_hard_reserve": ReserveField.HLDHR,
    "dot_reserve": ReserveField.DOTRSV,
    "ret_reserve": ReserveField.RETRSV,
    "dot_outbound": ReserveField.DOTOUTB,
    "ret_need": ReserveField.NEED,
}


class InitialValueSupplier:

    @classmethod
    def from_record(cls, record: InventoryRecord) -> Dict[ReserveField, Decimal]:
        raw = {
            field: getattr(record, attribute)
            for attribute, field in RECORD_FIELD_MAP.items()
        }
        return cls._normalize(raw)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> Dict[ReserveField, Decimal]:
        """Seed from ``{"ONHAND": 100, ...}``; unknown names raise ``UnknownFieldError``."""
        raw: Dict[ReserveField, Any] = {}
        for name, value in values.items():
            field = field_for(name)
            if field.category not in SEEDABLE_CATEGORIES:
                raise InvalidInputError(f"{field.value} is calculated and cannot be supplied as an input")
            raw[field] = value
        return cls._normalize(raw)

    @staticmethod
    def sanitize(field: ReserveField, value: Optional[Any]) -> Decimal:
        if value is None:
            return ZERO
        quantity = to_decimal(value)
        if quantity < ZERO and field not in SIGNED_FIELDS:
            raise InvalidInputError(f"Negative value not allowed for {field.value}: {quantity}")
        return quantity

    @classmethod
    def _normalize(cls, raw: Mapping[ReserveField, Any]) -> Dict[ReserveField, Decimal]:
        seeded: Dict[ReserveField, Decimal] = {}
        # DIV is written by a constant step; only seed it when supplied
        if raw.get(ReserveField.DIV) is not None:
            seeded[ReserveField.DIV] = cls.sanitize(ReserveField.DIV, raw[ReserveField.DIV])
        for field in (ReserveField.LOC, ReserveField.SKU, *fields_in(FieldCategory.INPUT)):
            seeded[field] = cls.sanitize(field, raw.get(field))
        return seeded

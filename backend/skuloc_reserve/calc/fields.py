"""
Field Catalog — the closed set of reserve calculation fields.

Fields are identified by their stable name (the enum value, e.g. ``@RETAILATS``).
Constraint and actual counterparts are derived from naming convention:

- ``SNB``  -> ``SNBX``  (constraint)
- ``SNB``  -> ``@SNBA`` (actual)

The convention is a heuristic; derivations return ``None`` when the derived name
is not registered.
"""
from enum import Enum
from typing import List, Optional, Union

from skuloc_reserve.core.exceptions import UnknownFieldError

CONSTRAINT_SUFFIX = "X"
ACTUAL_PREFIX = "@"
ACTUAL_SUFFIX = "A"


class FieldCategory(str, Enum):
    KEY = "Key Fields"
    INPUT = "SKULOC Input Fields"
    CALCULATED = "Calculated Fields"
    CONSTRAINT = "Constraint Fields"
    AGGREGATE = "Aggregate Fields"
    ACTUAL = "Actual Value Fields"
    OUTPUT = "Output Fields"
    SYSTEM = "System Fields"


class CalculationFlow(str, Enum):
    """Order-intake channels. OMS is the default/online flow."""

    OMS = "OMS"
    JEI = "JEI"
    FRM = "FRM"


class ReserveField(Enum):
    category: FieldCategory
    description: str

    def __new__(cls, field_name: str, category: FieldCategory, description: str):
        obj = object.__new__(cls)
        obj._value_ = field_name
        obj.category = category
        obj.description = description
        return obj

    # ── Key ──────────────────────────────────────────────────────────────────
    DIV = ("DIV", FieldCategory.KEY, "Division Number")
    LOC = ("LOC", FieldCategory.KEY, "Location Number")
    SKU = ("SKU", FieldCategory.KEY, "SKU Number")

    # ── SKULOC inputs ────────────────────────────────────────────────────────
    ONHAND = ("ONHAND", FieldCategory.INPUT, "On-Hand Units")
    ROHM = ("ROHM", FieldCategory.INPUT, "On-Hand Merchandise Reserve")
    LOST = ("LOST", FieldCategory.INPUT, "Lost/Found Units")
    DMG = ("DMG", FieldCategory.INPUT, "Damaged Units")
    OOBADJ = ("OOBADJ", FieldCategory.INPUT, "Out-Of-Balance Adjustment")
    SNB = ("SNB", FieldCategory.INPUT, "Shipped Not Billed")
    DTCO = ("DTCO", FieldCategory.INPUT, "Dotcom Open Customer Orders")
    ROHP = ("ROHP", FieldCategory.INPUT, "Retail On-Hand Pick")
    DOTHRY = ("DOTHRY", FieldCategory.INPUT, "Dotcom Hard Reserve ATS Yes")
    DOTHRN = ("DOTHRN", FieldCategory.INPUT, "Dotcom Hard Reserve ATS No")
    RETHRY = ("RETHRY", FieldCategory.INPUT, "Retail Hard Reserve ATS Yes")
    RETHRN = ("RETHRN", FieldCategory.INPUT, "Retail Hard Reserve ATS No")
    HLDHR = ("HLDHR", FieldCategory.INPUT, "Held Hard Reserve")
    DOTRSV = ("DOTRSV", FieldCategory.INPUT, "Dotcom Reserve")
    RETRSV = ("RETRSV", FieldCategory.INPUT, "Retail Reserve")
    DOTOUTB = ("DOTOUTB", FieldCategory.INPUT, "Dotcom Outbound")
    NEED = ("NEED", FieldCategory.INPUT, "Retail Need")

    # ── Calculated ───────────────────────────────────────────────────────────
    INITAFS = ("INITAFS", FieldCategory.CALCULATED, "Initial Available For Sale")
    UNCOMAFS = ("UNCOMAFS", FieldCategory.CALCULATED, "Uncommitted Available For Sale")
    AOUTBV = ("AOUTBV", FieldCategory.CALCULATED, "Adjusted Outbound Variance")
    ANEED = ("ANEED", FieldCategory.CALCULATED, "Adjusted Need")

    # ── Constraints ──────────────────────────────────────────────────────────
    SNBX = ("SNBX", FieldCategory.CONSTRAINT, "SNB Constraint")
    DTCOX = ("DTCOX", FieldCategory.CONSTRAINT, "DTCO Constraint")
    ROHPX = ("ROHPX", FieldCategory.CONSTRAINT, "ROHP Constraint")
    DOTHRYX = ("DOTHRYX", FieldCategory.CONSTRAINT, "DOTHRY Constraint")
    DOTHRNX = ("DOTHRNX", FieldCategory.CONSTRAINT, "DOTHRN Constraint")
    RETHRYX = ("RETHRYX", FieldCategory.CONSTRAINT, "RETHRY Constraint")
    RETHRNX = ("RETHRNX", FieldCategory.CONSTRAINT, "RETHRN Constraint")
    HLDHRX = ("HLDHRX", FieldCategory.CONSTRAINT, "HLDHR Constraint")
    DOTRSVX = ("DOTRSVX", FieldCategory.CONSTRAINT, "DOTRSV Constraint")
    RETRSVX = ("RETRSVX", FieldCategory.CONSTRAINT, "RETRSV Constraint")
    AOUTBVX = ("AOUTBVX", FieldCategory.CONSTRAINT, "AOUTBV Constraint")
    NEEDX = ("NEEDX", FieldCategory.CONSTRAINT, "ANEED Constraint")

    # ── Aggregates ───────────────────────────────────────────────────────────
    RETAILATS = ("@RETAILATS", FieldCategory.AGGREGATE, "Retail Available To Sell")
    DOTATS = ("@DOTATS", FieldCategory.AGGREGATE, "Dotcom Available To Sell")
    UNCOMMIT = ("@UNCOMMIT", FieldCategory.AGGREGATE, "Uncommitted Inventory")
    COMMITTED = ("@COMMITTED", FieldCategory.AGGREGATE, "Committed Inventory")
    UNCOMMHR = ("@UNCOMMHR", FieldCategory.AGGREGATE, "Uncommitted Hard Reserve")

    # ── Outputs ──────────────────────────────────────────────────────────────
    OMSSUP = ("@OMSSUP", FieldCategory.OUTPUT, "OMS Supply")
    RETFINAL = ("@RETFINAL", FieldCategory.OUTPUT, "Retail Final")
    OMSFINAL = ("@OMSFINAL", FieldCategory.OUTPUT, "OMS Final")

    # ── Actuals ──────────────────────────────────────────────────────────────
    SNBA = ("@SNBA", FieldCategory.ACTUAL, "SNB Actual")
    DTCOA = ("@DTCOA", FieldCategory.ACTUAL, "DTCO Actual")
    ROHPA = ("@ROHPA", FieldCategory.ACTUAL, "ROHP Actual")
    DOTHRYA = ("@DOTHRYA", FieldCategory.ACTUAL, "DOTHRY Actual")
    DOTHRNA = ("@DOTHRNA", FieldCategory.ACTUAL, "DOTHRN Actual")
    RETHRYA = ("@RETHRYA", FieldCategory.ACTUAL, "RETHRY Actual")
    RETHRNA = ("@RETHRNA", FieldCategory.ACTUAL, "RETHRN Actual")
    HLDHRA = ("@HLDHRA", FieldCategory.ACTUAL, "HLDHR Actual")
    DOTRSVA = ("@DOTRSVA", FieldCategory.ACTUAL, "DOTRSV Actual")
    RETRSVA = ("@RETRSVA", FieldCategory.ACTUAL, "RETRSV Actual")
    AOUTBVA = ("@AOUTBVA", FieldCategory.ACTUAL, "AOUTBV Actual")
    NEEDA = ("@NEEDA", FieldCategory.ACTUAL, "NEED Actual")

    # ── System ───────────────────────────────────────────────────────────────
    RUNNING_AFS = ("RUNNING_AFS", FieldCategory.SYSTEM, "Running Uncommitted AFS")

    @property
    def field_name(self) -> str:
        return self.value

    @property
    def is_constraint(self) -> bool:
        return self.category is FieldCategory.CONSTRAINT

    def __str__(self) -> str:
        return self.value


FieldLike = Union[ReserveField, str]


def _lookup(name: str) -> Optional[ReserveField]:
    try:
        return ReserveField(name)
    except ValueError:
        pass
    return ReserveField.__members__.get(name)


def field_for(name: FieldLike) -> ReserveField:
    """Resolve a field by name (``@DOTATS``), member name (``DOTATS``) or identity."""
    if isinstance(name, ReserveField):
        return name
    if isinstance(name, str):
        field = _lookup(name)
        if field is not None:
            return field
    raise UnknownFieldError(name)


def base_of(field: FieldLike) -> Optional[ReserveField]:
    """``SNBX`` -> ``SNB``. Non-constraint fields are their own base."""
    field = field_for(field)
    if not field.is_constraint:
        return field
    return _lookup(field.name[: -len(CONSTRAINT_SUFFIX)])


def constraint_of(field: FieldLike) -> Optional[ReserveField]:
    """``SNB`` -> ``SNBX``. Constraint fields are their own constraint."""
    field = field_for(field)
    if field.is_constraint:
        return field
    candidate = _lookup(field.name + CONSTRAINT_SUFFIX)
    if candidate is None or not candidate.is_constraint:
        return None
    return candidate


def actual_of(field: FieldLike) -> Optional[ReserveField]:
    """``SNB`` or ``SNBX`` -> ``@SNBA``."""
    base = base_of(field)
    if base is None:
        return None
    candidate = _lookup(ACTUAL_PREFIX + base.name + ACTUAL_SUFFIX)
    if candidate is None or candidate.category is not FieldCategory.ACTUAL:
        return None
    return candidate


def fields_in(category: FieldCategory) -> List[ReserveField]:
    return [field for field in ReserveField if field.category is category]

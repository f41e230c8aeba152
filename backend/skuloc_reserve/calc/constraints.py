"""
Constraint Resolver — greedy sequential depletion of the running pool.

Every reservation type pairs a requested field with a constraint field (the
shortfall) and an actual field (what the pool could satisfy). Types are resolved
in a fixed priority order; each one consumes from what its predecessors left.

    actual     = min(requested, max(pool, 0))
    constraint = max(requested - actual, 0)
    pool_after = max(pool, 0) - actual
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from skuloc_reserve.calc.fields import ReserveField, actual_of, constraint_of

ZERO = Decimal("0")


@dataclass(frozen=True)
class ReservationType:
    key: str
    requested: ReserveField
    constraint: ReserveField
    actual: ReserveField
    description: str

    @classmethod
    def for_field(cls, key: str, requested: ReserveField, description: str,
                  base: Optional[ReserveField] = None) -> "ReservationType":
        """Derive constraint/actual fields by naming convention from ``base`` (defaults to ``requested``)."""
        base = base or requested
        constraint = constraint_of(base)
        actual = actual_of(base)
        if constraint is None or actual is None:
            raise ValueError(f"{base.value} has no constraint/actual counterpart")
        return cls(key, requested, constraint, actual, description)


SNB = ReservationType.for_field("snb", ReserveField.SNB, "shipped not billed")
DTCO = ReservationType.for_field("dtco", ReserveField.DTCO, "dotcom open customer orders")
ROHP = ReservationType.for_field("rohp", ReserveField.ROHP, "retail pick")
DOTHRY = ReservationType.for_field("dothry", ReserveField.DOTHRY, "dotcom hard reserve ATS yes")
DOTHRN = ReservationType.for_field("dothrn", ReserveField.DOTHRN, "dotcom hard reserve ATS no")
RETHRY = ReservationType.for_field("rethry", ReserveField.RETHRY, "retail hard reserve ATS yes")
RETHRN = ReservationType.for_field("rethrn", ReserveField.RETHRN, "retail hard reserve ATS no")
HLDHR = ReservationType.for_field("hldhr", ReserveField.HLDHR, "held hard reserve")
DOTRSV = ReservationType.for_field("dotrsv", ReserveField.DOTRSV, "dotcom soft reserve")
RETRSV = ReservationType.for_field("retrsv", ReserveField.RETRSV, "retail soft reserve")
AOUTBV = ReservationType.for_field("aoutbv", ReserveField.AOUTBV, "outbound adjustment")
NEED = ReservationType.for_field("need", ReserveField.ANEED, "retail need", base=ReserveField.NEED)

RESERVATION_PRIORITY: Tuple[ReservationType, ...] = (
    SNB, DTCO, ROHP,
    DOTHRY, DOTHRN, RETHRY, RETHRN, HLDHR,
    DOTRSV, RETRSV,
    AOUTBV, NEED,
)

COMMITMENTS: Tuple[ReservationType, ...] = (SNB, DTCO, ROHP)


@dataclass(frozen=True)
class Resolution:
    reservation: ReservationType
    requested: Decimal
    pool_before: Decimal
    actual: Decimal
    constraint: Decimal
    pool_after: Decimal

    @property
    def is_short(self) -> bool:
        return self.constraint > ZERO


class ConstraintResolver:

    @staticmethod
    def resolve(requested: Decimal, pool: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
        """Return ``(actual, constraint, pool_after)`` for one request against ``pool``."""
        available = max(pool, ZERO)
        actual = min(requested, available)
        # negative requests consume nothing
        actual = max(actual, ZERO)
        constraint = max(requested - actual, ZERO)
        return actual, constraint, available - actual

    @classmethod
    def resolution(cls, reservation: ReservationType, requested: Decimal, pool: Decimal) -> Resolution:
        actual, constraint, pool_after = cls.resolve(requested, pool)
        return Resolution(
            reservation=reservation,
            requested=requested,
            pool_before=pool,
            actual=actual,
            constraint=constraint,
            pool_after=pool_after,
        )


class RunningPool:
    """Remaining uncommitted AFS as reservation types are consumed in order."""

    def __init__(self, starting: Decimal):
        self.starting = starting
        self._available = starting
        self._trace: List[Resolution] = []

    @property
    def available(self) -> Decimal:
        return self._available

    @property
    def trace(self) -> List[Resolution]:
        return list(self._trace)

    def consume(self, reservation: ReservationType, requested: Decimal) -> Resolution:
        result = ConstraintResolver.resolution(reservation, requested, self._available)
        self._available = result.pool_after
        self._trace.append(result)
        return result

    def rebase(self, value: Decimal) -> None:
        self._available = value

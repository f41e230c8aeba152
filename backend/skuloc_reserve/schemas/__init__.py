from skuloc_reserve.schemas.reserve import (
    InventoryRecord,
    ReserveCalculationRequest,
    ConstraintSummary,
    PoolTraceEntry,
    ReserveCalculationResult,
)

__all__ = [
    "InventoryRecord",
    "ReserveCalculationRequest",
    "ConstraintSummary",
    "PoolTraceEntry",
    "ReserveCalculationResult",
]

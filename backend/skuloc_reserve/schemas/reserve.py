from pydantic import BaseModel, Field, StrictBool, StrictStr
from typing import Optional, List, Dict, Union
from decimal import Decimal

from skuloc_reserve.calc.fields import CalculationFlow

ModifierInput = Union[StrictBool, Decimal, StrictStr]


class InventoryRecord(BaseModel):
    division: Optional[int] = Field(None, ge=0)
    location: Optional[int] = Field(None, ge=0)
    sku: Optional[int] = Field(None, ge=0)
    on_hand: Optional[Decimal] = Field(None, ge=0)
    merchandise_reserve: Optional[Decimal] = Field(None, ge=0)
    lost: Optional[Decimal] = Field(None, ge=0)
    damaged: Optional[Decimal] = Field(None, ge=0)
    oob_adjustment: Optional[Decimal] = None
    retail_pick_reserve: Optional[Decimal] = Field(None, ge=0)
    ship_not_billed: Optional[Decimal] = Field(None, ge=0)
    open_customer_orders: Optional[Decimal] = Field(None, ge=0)
    dot_hard_reserve_ats_yes: Optional[Decimal] = Field(None, ge=0)
    dot_hard_reserve_ats_no: Optional[Decimal] = Field(None, ge=0)
    ret_hard_reserve_ats_yes: Optional[Decimal] = Field(None, ge=0)
    ret_hard_reserve_ats_no: Optional[Decimal] = Field(None, ge=0)
    held_hard_reserve: Optional[Decimal] = Field(None, ge=0)
    dot_reserve: Optional[Decimal] = Field(None, ge=0)
    ret_reserve: Optional[Decimal] = Field(None, ge=0)
    dot_outbound: Optional[Decimal] = Field(None, ge=0)
    ret_need: Optional[Decimal] = Field(None, ge=0)
    buyer_class: Optional[str] = Field(None, max_length=2)
    sku_status: Optional[str] = Field(None, max_length=2)


class ReserveCalculationRequest(BaseModel):
    record: InventoryRecord
    channel: Optional[CalculationFlow] = None
    modifiers: Dict[str, ModifierInput] = Field(default_factory=dict)


class ConstraintSummary(BaseModel):
    reservation: str
    requested_field: str
    requested: Decimal
    actual: Decimal
    constraint: Decimal
    is_short: bool


class PoolTraceEntry(BaseModel):
    reservation: str
    pool_before: Decimal
    actual: Decimal
    pool_after: Decimal


class ReserveCalculationResult(BaseModel):
    channel: CalculationFlow
    values: Dict[str, Decimal]
    flows: Dict[str, Dict[str, Decimal]]
    key_metrics: Dict[str, Decimal]
    constraints: List[ConstraintSummary]
    running_pool: List[PoolTraceEntry]

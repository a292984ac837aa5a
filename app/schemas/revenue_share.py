from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import date, datetime
from decimal import Decimal

class RevenueShareBase(BaseModel):
    transaction_id: int
    source_agent_id: int
    recipient_agent_id: int
    tier: int = Field(..., ge=1, le=5)
    amount: Decimal = Field(..., ge=0)
    proposed_amount: Decimal = Field(..., ge=0)
    calculation_details: Optional[Any] = None

class RevenueShareCreate(RevenueShareBase):
    """Line item produced by the revenue share engine, ready to persist."""
    pass

class RevenueShare(RevenueShareBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

class CapStatus(BaseModel):
    """How much revenue share an agent may still receive in one anniversary year."""
    agent_id: int
    window_start: date
    window_end: date
    max_allowance: Decimal
    already_paid: Decimal
    remaining: Decimal

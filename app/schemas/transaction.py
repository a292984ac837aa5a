from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from app.models.enums import LeadSource, TransactionType
from app.schemas.revenue_share import RevenueShare

class TransactionBase(BaseModel):
    agent_id: int
    property_address: str = Field(..., min_length=1, max_length=500)
    sale_amount: Decimal = Field(..., gt=0, decimal_places=2)
    commission_percentage: Decimal = Field(..., gt=0, le=100, decimal_places=3)
    transaction_date: date
    is_company_provided: Optional[bool] = None  # Derived from lead_source when omitted
    compliance_fee_paid_by_client: bool = False
    lead_source: Optional[LeadSource] = None
    transaction_type: TransactionType = TransactionType.BUYER
    client_name: Optional[str] = Field(default=None, max_length=255)

class TransactionCreate(TransactionBase):
    # Explicit company GCI overrides the standard 15% retention
    company_gci: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

class TransactionUpdate(BaseModel):
    agent_id: Optional[int] = None
    property_address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    sale_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    commission_percentage: Optional[Decimal] = Field(default=None, gt=0, le=100, decimal_places=3)
    transaction_date: Optional[date] = None
    is_company_provided: Optional[bool] = None
    compliance_fee_paid_by_client: Optional[bool] = None
    lead_source: Optional[LeadSource] = None
    transaction_type: Optional[TransactionType] = None
    client_name: Optional[str] = Field(default=None, max_length=255)
    company_gci: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

class Transaction(TransactionBase):
    id: int
    is_company_provided: bool
    total_commission: Decimal
    company_gci: Decimal
    company_gci_override: Optional[Decimal] = None
    agent_commission_percentage: Decimal
    agent_commission_amount: Decimal
    compliance_fee: Decimal
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TransactionWithRevenueShares(Transaction):
    revenue_shares: List[RevenueShare] = []

class CommissionSplit(BaseModel):
    """Result of splitting one transaction's commission between agent and company."""
    total_commission: Decimal
    company_gci: Decimal
    agent_commission_percentage: Decimal
    agent_commission_amount: Decimal
    compliance_fee: Decimal  # Amount deducted from the agent; 0 when the client pays it

class SplitPreviewRequest(BaseModel):
    agent_id: int
    sale_amount: Decimal = Field(..., gt=0, decimal_places=2)
    commission_percentage: Decimal = Field(..., gt=0, le=100, decimal_places=3)
    is_company_provided: bool = False
    compliance_fee_paid_by_client: bool = False

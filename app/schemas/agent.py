from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from app.models.enums import AgentType, CapType

class AgentBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    agent_type: AgentType
    cap_type: Optional[CapType] = None
    anniversary_date: date

class AgentCreate(AgentBase):
    sponsor_id: Optional[int] = None
    total_gci_ytd: Decimal = Field(default=Decimal("0"), ge=0)
    career_sales_count: int = Field(default=0, ge=0)

class AgentUpdate(BaseModel):
    """Only fields that are explicitly set are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    agent_type: Optional[AgentType] = None
    cap_type: Optional[CapType] = None
    anniversary_date: Optional[date] = None
    sponsor_id: Optional[int] = None
    total_gci_ytd: Optional[Decimal] = Field(default=None, ge=0)
    career_sales_count: Optional[int] = Field(default=None, ge=0)

class Agent(AgentBase):
    id: int
    sponsor_id: Optional[int] = None
    total_gci_ytd: Decimal
    career_sales_count: int
    current_tier: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class AgentWithDownline(Agent):
    downline: List["AgentWithDownline"] = []
    total_earnings: Decimal = Decimal("0")

AgentWithDownline.model_rebuild()

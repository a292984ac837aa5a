from pydantic import BaseModel
from typing import List
from decimal import Decimal

from app.schemas.transaction import Transaction

class AgentTaxSummary(BaseModel):
    """Calendar-year earnings of one agent, for 1099 preparation."""
    agent_id: int
    agent_name: str
    year: int
    transaction_count: int
    total_commission: Decimal  # Agent's own commission from closed transactions
    total_revenue_share: Decimal  # Revenue share received as a sponsor
    transactions: List[Transaction] = []

class ProductionTotals(BaseModel):
    transaction_count: int
    total_volume: Decimal  # Sum of sale amounts
    total_company_gci: Decimal
    total_agent_income: Decimal
    average_sale_price: Decimal

class AgentPerformance(ProductionTotals):
    agent_id: int
    agent_name: str
    agent_type: str

class LeadSourceBreakdown(ProductionTotals):
    lead_source: str  # "unknown" for transactions recorded without one

class ZipCodeBreakdown(ProductionTotals):
    zip_code: str  # "unknown" when the address carries no five-digit code

class IncomeDistribution(BaseModel):
    """Where the commission on a set of transactions went."""
    transaction_count: int
    active_agent_count: int
    total_commission: Decimal
    total_company_gci: Decimal
    total_agent_income: Decimal
    total_revenue_share: Decimal  # Paid up the sponsor chains out of company GCI
    company_net_income: Decimal  # Company GCI less revenue share

import re
from collections import defaultdict
from decimal import Decimal
from typing import Callable, Dict, List

from sqlalchemy.orm import Session

from app.core.commission_splitter import to_cents
from app.crud import crud_agent
from app.models.transaction import Transaction
from app.schemas.report import (
    AgentPerformance,
    IncomeDistribution,
    LeadSourceBreakdown,
    ZipCodeBreakdown,
)

UNKNOWN = "unknown"
ZIP_CODE_PATTERN = re.compile(r"\b\d{5}\b")

def _totals(transactions: List[Transaction]) -> dict:
    count = len(transactions)
    volume = sum((Decimal(t.sale_amount) for t in transactions), Decimal("0"))
    return {
        "transaction_count": count,
        "total_volume": volume,
        "total_company_gci": sum((Decimal(t.company_gci) for t in transactions), Decimal("0")),
        "total_agent_income": sum((Decimal(t.agent_commission_amount) for t in transactions), Decimal("0")),
        "average_sale_price": to_cents(volume / count) if count else Decimal("0"),
    }

def _group(transactions: List[Transaction], key: Callable[[Transaction], object]) -> Dict[object, List[Transaction]]:
    groups = defaultdict(list)
    for transaction in transactions:
        groups[key(transaction)].append(transaction)
    return groups

def zip_code_for(address: str) -> str:
    """The last standalone five-digit group in the address, so house numbers are skipped."""
    matches = ZIP_CODE_PATTERN.findall(address or "")
    return matches[-1] if matches else UNKNOWN

def agent_performance(db: Session, transactions: List[Transaction]) -> List[AgentPerformance]:
    """Per closing agent, highest volume first. Agents without sales are left out."""
    rows = []
    for agent_id, closed in _group(transactions, lambda t: t.agent_id).items():
        agent = crud_agent.get_agent(db, agent_id=agent_id)
        rows.append(AgentPerformance(
            agent_id=agent_id,
            agent_name=agent.name,
            agent_type=agent.agent_type,
            **_totals(closed),
        ))
    return sorted(rows, key=lambda row: (-row.total_volume, row.agent_id))

def lead_source_breakdown(transactions: List[Transaction]) -> List[LeadSourceBreakdown]:
    rows = [
        LeadSourceBreakdown(lead_source=source, **_totals(group))
        for source, group in _group(transactions, lambda t: t.lead_source or UNKNOWN).items()
    ]
    return sorted(rows, key=lambda row: (-row.transaction_count, row.lead_source))

def zip_code_breakdown(transactions: List[Transaction]) -> List[ZipCodeBreakdown]:
    rows = [
        ZipCodeBreakdown(zip_code=zip_code, **_totals(group))
        for zip_code, group in _group(transactions, lambda t: zip_code_for(t.property_address)).items()
    ]
    return sorted(rows, key=lambda row: (-row.transaction_count, row.zip_code))

def income_distribution(transactions: List[Transaction]) -> IncomeDistribution:
    totals = _totals(transactions)
    revenue_share = sum(
        (Decimal(share.amount) for t in transactions for share in t.revenue_shares), Decimal("0")
    )
    return IncomeDistribution(
        transaction_count=totals["transaction_count"],
        active_agent_count=len({t.agent_id for t in transactions}),
        total_commission=sum((Decimal(t.total_commission) for t in transactions), Decimal("0")),
        total_company_gci=totals["total_company_gci"],
        total_agent_income=totals["total_agent_income"],
        total_revenue_share=revenue_share,
        company_net_income=totals["total_company_gci"] - revenue_share,
    )

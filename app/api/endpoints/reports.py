from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import schemas
from app.core import cap_tracker, dependencies
from app.crud import crud_agent, crud_report, crud_revenue_share, crud_transaction
from app.db.session import get_db
from app.models.enums import LeadSource, TransactionType
from app.models.user import User as UserModel

router = APIRouter()

def _scoped_agent_id(current_user: UserModel, agent_id: Optional[int]) -> Optional[int]:
    """Admins report on any agent or all of them; agents only on themselves."""
    if dependencies.is_admin(current_user):
        return agent_id
    if agent_id is not None:
        dependencies.ensure_agent_access(current_user, agent_id)
    return current_user.agent_id

@router.get("/agents/{agent_id}/cap-status", response_model=schemas.CapStatus)
def read_cap_status(
    agent_id: int,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Revenue share the agent has received and may still receive in the
    anniversary year containing `as_of` (default today).
    """
    dependencies.ensure_agent_access(current_user, agent_id)
    agent = crud_agent.get_agent(db, agent_id=agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return cap_tracker.get_cap_status(db, agent, as_of or date.today())

@router.get("/agents/{agent_id}/tax-summary", response_model=schemas.AgentTaxSummary)
def read_tax_summary(
    agent_id: int,
    year: int = Query(..., ge=1900, le=9999),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Calendar-year commission and revenue share totals for one agent (1099 preparation).
    """
    dependencies.ensure_agent_access(current_user, agent_id)
    agent = crud_agent.get_agent(db, agent_id=agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    start, end = date(year, 1, 1), date(year, 12, 31)
    transactions = crud_transaction.get_transactions_by_agent(
        db, agent_id=agent_id, start_date=start, end_date=end, limit=None
    )
    total_commission = sum(
        (Decimal(t.agent_commission_amount) for t in transactions), Decimal("0")
    )
    total_revenue_share = crud_revenue_share.sum_paid_to_recipient(
        db, recipient_agent_id=agent_id, start_date=start, end_date=end
    )
    return schemas.AgentTaxSummary(
        agent_id=agent.id,
        agent_name=agent.name,
        year=year,
        transaction_count=len(transactions),
        total_commission=total_commission,
        total_revenue_share=total_revenue_share,
        transactions=[schemas.Transaction.model_validate(t) for t in transactions],
    )

@router.get("/transactions", response_model=List[schemas.Transaction])
def read_transaction_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    agent_id: Optional[int] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None),
    lead_source: Optional[LeadSource] = Query(None),
    address: Optional[str] = Query(None, max_length=500),
    zip_code: Optional[str] = Query(None, pattern=r"^\d{5}$"),
    min_sale_amount: Optional[Decimal] = Query(None, ge=0),
    max_sale_amount: Optional[Decimal] = Query(None, ge=0),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Transactions matching all of the given filters, newest first.
    """
    return crud_transaction.get_filtered_transactions(
        db,
        start_date=start_date,
        end_date=end_date,
        agent_id=_scoped_agent_id(current_user, agent_id),
        transaction_type=transaction_type.value if transaction_type else None,
        lead_source=lead_source.value if lead_source else None,
        address=address,
        zip_code=zip_code,
        min_sale_amount=min_sale_amount,
        max_sale_amount=max_sale_amount,
    )

@router.get("/agent-performance", response_model=List[schemas.AgentPerformance])
def read_agent_performance(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    agent_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Volume, GCI and income per closing agent, highest volume first.
    """
    transactions = crud_transaction.get_filtered_transactions(
        db, start_date=start_date, end_date=end_date, agent_id=_scoped_agent_id(current_user, agent_id)
    )
    return crud_report.agent_performance(db, transactions)

@router.get("/lead-source", response_model=List[schemas.LeadSourceBreakdown])
def read_lead_source_report(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    agent_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    transactions = crud_transaction.get_filtered_transactions(
        db, start_date=start_date, end_date=end_date, agent_id=_scoped_agent_id(current_user, agent_id)
    )
    return crud_report.lead_source_breakdown(transactions)

@router.get("/income-distribution", response_model=schemas.IncomeDistribution)
def read_income_distribution(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    agent_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Split of the total commission between agents, sponsors and the company.
    """
    transactions = crud_transaction.get_filtered_transactions(
        db, start_date=start_date, end_date=end_date, agent_id=_scoped_agent_id(current_user, agent_id)
    )
    return crud_report.income_distribution(transactions)

@router.get("/zip-code-analysis", response_model=List[schemas.ZipCodeBreakdown])
def read_zip_code_analysis(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    transactions = crud_transaction.get_filtered_transactions(
        db, start_date=start_date, end_date=end_date, agent_id=_scoped_agent_id(current_user, None)
    )
    return crud_report.zip_code_breakdown(transactions)

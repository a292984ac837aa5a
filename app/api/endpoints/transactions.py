import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import schemas
from app.api.errors import to_http_exception
from app.core import dependencies
from app.core.commission_splitter import split_commission
from app.core.exceptions import BrokerageError
from app.crud import crud_agent, crud_revenue_share, crud_transaction
from app.db.session import get_db
from app.models.transaction import Transaction as TransactionModel
from app.models.user import User as UserModel

logger = logging.getLogger(__name__)
router = APIRouter()

def _get_transaction_or_404(db: Session, transaction_id: int) -> TransactionModel:
    transaction = crud_transaction.get_transaction(db, transaction_id=transaction_id)
    if not transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return transaction

@router.post("/", response_model=schemas.TransactionWithRevenueShares, status_code=201)
def create_transaction(
    transaction_in: schemas.TransactionCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Record a closed transaction. The commission split and the sponsors'
    revenue share are calculated and stored with it.
    """
    dependencies.ensure_agent_access(current_user, transaction_in.agent_id)
    if not crud_agent.get_agent(db, agent_id=transaction_in.agent_id):
        raise HTTPException(status_code=404, detail=f"Agent with id {transaction_in.agent_id} not found.")
    try:
        transaction = crud_transaction.create_transaction(db, obj_in=transaction_in)
    except BrokerageError as exc:
        raise to_http_exception(exc)
    logger.info(f"Transaction {transaction.id} recorded by {current_user.username}")
    return transaction

@router.get("/", response_model=List[schemas.Transaction])
def read_transactions(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    All transactions for admins; agents only see the ones they closed.
    """
    if dependencies.is_admin(current_user):
        return crud_transaction.get_transactions(db, skip=skip, limit=limit)
    return crud_transaction.get_transactions_by_agent(
        db, agent_id=current_user.agent_id, skip=skip, limit=limit
    )

@router.post("/preview-split", response_model=schemas.CommissionSplit)
def preview_commission_split(
    request: schemas.SplitPreviewRequest,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Calculate the commission split for a prospective sale without saving anything.
    """
    dependencies.ensure_agent_access(current_user, request.agent_id)
    agent = crud_agent.get_agent(db, agent_id=request.agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail=f"Agent with id {request.agent_id} not found.")
    try:
        return split_commission(
            request.sale_amount,
            request.commission_percentage,
            agent,
            is_company_provided_lead=request.is_company_provided,
            career_sales_count=agent.career_sales_count or 0,
            compliance_fee_paid_by_agent=not request.compliance_fee_paid_by_client,
        )
    except BrokerageError as exc:
        raise to_http_exception(exc)

@router.get("/{transaction_id}", response_model=schemas.TransactionWithRevenueShares)
def read_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    transaction = _get_transaction_or_404(db, transaction_id)
    dependencies.ensure_agent_access(current_user, transaction.agent_id)
    return transaction

@router.put("/{transaction_id}", response_model=schemas.TransactionWithRevenueShares)
def update_transaction(
    transaction_id: int,
    transaction_in: schemas.TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Edit a transaction. Its commission split and revenue share are recalculated
    when the figures, the closing agent or the date change.
    """
    transaction = _get_transaction_or_404(db, transaction_id)
    try:
        return crud_transaction.update_transaction(db, db_obj=transaction, obj_in=transaction_in)
    except BrokerageError as exc:
        raise to_http_exception(exc)

@router.delete("/{transaction_id}", response_model=schemas.Transaction)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    transaction = _get_transaction_or_404(db, transaction_id)
    deleted = schemas.Transaction.model_validate(transaction)
    try:
        crud_transaction.delete_transaction(db, db_obj=transaction)
    except BrokerageError as exc:
        raise to_http_exception(exc)
    return deleted

@router.get("/{transaction_id}/revenue-shares", response_model=List[schemas.RevenueShare])
def read_transaction_revenue_shares(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Revenue share line items of one transaction, in tier order.
    """
    transaction = _get_transaction_or_404(db, transaction_id)
    dependencies.ensure_agent_access(current_user, transaction.agent_id)
    return crud_revenue_share.get_revenue_shares_by_transaction(db, transaction_id=transaction_id)

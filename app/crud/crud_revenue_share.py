from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.models.revenue_share import RevenueShare
from app.models.transaction import Transaction
from app.schemas.revenue_share import RevenueShareCreate

# Writes here only add/flush; the caller's unit of work commits, so a
# transaction and its line items always land together.

def add_revenue_shares(db: Session, *, items: List[RevenueShareCreate]) -> List[RevenueShare]:
    """
    Stage a batch of line items in the current session.
    """
    db_objs = [RevenueShare(**item.model_dump()) for item in items]
    db.add_all(db_objs)
    db.flush()
    return db_objs

def delete_revenue_shares_for_transaction(db: Session, *, transaction_id: int) -> int:
    """
    Stage deletion of every line item generated from a transaction. Returns the row count.
    """
    deleted = (
        db.query(RevenueShare)
        .filter(RevenueShare.transaction_id == transaction_id)
        .delete(synchronize_session="fetch")
    )
    db.flush()
    return deleted

def get_revenue_shares(db: Session, *, skip: int = 0, limit: int = 100) -> List[RevenueShare]:
    return (
        db.query(RevenueShare)
        .order_by(RevenueShare.created_at.desc(), RevenueShare.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_revenue_shares_by_transaction(db: Session, *, transaction_id: int) -> List[RevenueShare]:
    return (
        db.query(RevenueShare)
        .filter(RevenueShare.transaction_id == transaction_id)
        .order_by(RevenueShare.tier)
        .all()
    )

def get_revenue_shares_by_agent(
    db: Session, *, agent_id: int, skip: int = 0, limit: int = 100
) -> List[RevenueShare]:
    """
    Line items where the agent is either the recipient or the closing agent.
    """
    return (
        db.query(RevenueShare)
        .filter(or_(RevenueShare.recipient_agent_id == agent_id, RevenueShare.source_agent_id == agent_id))
        .order_by(RevenueShare.created_at.desc(), RevenueShare.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def sum_paid_to_recipient(
    db: Session,
    *,
    recipient_agent_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    exclude_transaction_id: Optional[int] = None,
) -> Decimal:
    """
    Total revenue share paid to an agent for transactions dated within [start_date, end_date].
    """
    query = (
        db.query(RevenueShare.amount)
        .join(Transaction, RevenueShare.transaction_id == Transaction.id)
        .filter(RevenueShare.recipient_agent_id == recipient_agent_id)
    )
    if start_date is not None:
        query = query.filter(Transaction.transaction_date >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.transaction_date <= end_date)
    if exclude_transaction_id is not None:
        query = query.filter(RevenueShare.transaction_id != exclude_transaction_id)
    return sum((Decimal(amount) for (amount,) in query.all()), Decimal("0"))

def count_revenue_shares_for_agent(db: Session, *, agent_id: int) -> int:
    return (
        db.query(RevenueShare)
        .filter(or_(RevenueShare.recipient_agent_id == agent_id, RevenueShare.source_agent_id == agent_id))
        .count()
    )

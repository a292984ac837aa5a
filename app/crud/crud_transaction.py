import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.commission_splitter import split_commission
from app.core.exceptions import MissingAgentError
from app.core.revenue_share_engine import record_revenue_shares
from app.crud import crud_agent, crud_revenue_share
from app.db.session import run_in_transaction
from app.models.enums import COMPANY_PROVIDED_LEAD_SOURCES, LeadSource
from app.models.transaction import Transaction
from app.schemas.transaction import TransactionCreate, TransactionUpdate

logger = logging.getLogger(__name__)

# Changing any of these re-runs the commission split
SPLIT_FIELDS = {
    "agent_id",
    "sale_amount",
    "commission_percentage",
    "is_company_provided",
    "compliance_fee_paid_by_client",
    "lead_source",
    "company_gci",
}
# Changing any of these regenerates the revenue share line items
REVENUE_SHARE_FIELDS = SPLIT_FIELDS | {"transaction_date"}
# Changing any of these drops a stored company GCI override
RESET_OVERRIDE_FIELDS = {"sale_amount", "commission_percentage"}

ENUM_FIELDS = ("lead_source", "transaction_type")
NULLABLE_FIELDS = ("lead_source", "client_name")

def resolve_company_provided(is_company_provided: Optional[bool], lead_source: Optional[str]) -> bool:
    """Explicit flag wins; otherwise Zillow/Google/company leads count as company-provided."""
    if is_company_provided is not None:
        return is_company_provided
    if lead_source is None:
        return False
    return LeadSource(lead_source) in COMPANY_PROVIDED_LEAD_SOURCES

def _apply_split(db: Session, db_obj: Transaction) -> None:
    agent = crud_agent.get_agent(db, agent_id=db_obj.agent_id)
    if agent is None:
        raise MissingAgentError(db_obj.agent_id, "closing agent")

    split = split_commission(
        db_obj.sale_amount,
        db_obj.commission_percentage,
        agent,
        is_company_provided_lead=db_obj.is_company_provided,
        career_sales_count=agent.career_sales_count or 0,
        compliance_fee_paid_by_agent=not db_obj.compliance_fee_paid_by_client,
        company_gci=db_obj.company_gci_override,
    )
    db_obj.total_commission = split.total_commission
    db_obj.company_gci = split.company_gci
    db_obj.agent_commission_percentage = split.agent_commission_percentage
    db_obj.agent_commission_amount = split.agent_commission_amount
    db_obj.compliance_fee = split.compliance_fee

def _enum_values(data: dict) -> dict:
    for field in ENUM_FIELDS:
        if data.get(field) is not None:
            data[field] = data[field].value
    return data

def create_transaction(db: Session, *, obj_in: TransactionCreate) -> Transaction:
    """
    Create a transaction, split its commission and generate its revenue share.

    The transaction and all of its line items are committed together or not at all.
    """
    data = _enum_values(obj_in.model_dump(exclude={"company_gci"}))
    data["company_gci_override"] = obj_in.company_gci
    data["is_company_provided"] = resolve_company_provided(data["is_company_provided"], data["lead_source"])

    def operation() -> Transaction:
        db_obj = Transaction(**data)
        _apply_split(db, db_obj)
        db.add(db_obj)
        db.flush()
        record_revenue_shares(db, db_obj)
        return db_obj

    db_obj = run_in_transaction(db, operation)
    db.refresh(db_obj)
    logger.info(f"Transaction {db_obj.id} created for agent {db_obj.agent_id}")
    return db_obj

def update_transaction(db: Session, *, db_obj: Transaction, obj_in: TransactionUpdate) -> Transaction:
    """
    Apply an edit. Economic changes re-split the commission, and the
    transaction's own line items are deleted and regenerated from scratch.
    A company_gci set on create or edit sticks to the transaction until a new
    one is given or the sale amount or commission percentage changes, which
    puts the split back on the standard retention.
    """
    update_data = _enum_values(obj_in.model_dump(exclude_unset=True))
    # Explicit nulls only clear the optional descriptive fields
    update_data = {
        field: value for field, value in update_data.items()
        if value is not None or field in NULLABLE_FIELDS
    }
    company_gci = update_data.pop("company_gci", None)
    changed = set(update_data) | ({"company_gci"} if company_gci is not None else set())
    if company_gci is not None:
        company_gci_override = company_gci
    elif RESET_OVERRIDE_FIELDS & set(update_data):
        company_gci_override = None
    else:
        company_gci_override = db_obj.company_gci_override

    if "agent_id" in update_data and crud_agent.get_agent(db, agent_id=update_data["agent_id"]) is None:
        raise MissingAgentError(update_data["agent_id"], "new closing agent")

    def operation() -> Transaction:
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        if "lead_source" in update_data and "is_company_provided" not in update_data:
            db_obj.is_company_provided = resolve_company_provided(None, db_obj.lead_source)

        if changed & SPLIT_FIELDS:
            db_obj.company_gci_override = company_gci_override
            _apply_split(db, db_obj)
        db.add(db_obj)
        db.flush()

        if changed & REVENUE_SHARE_FIELDS:
            record_revenue_shares(db, db_obj)
        return db_obj

    db_obj = run_in_transaction(db, operation)
    db.refresh(db_obj)
    logger.info(f"Transaction {db_obj.id} updated ({', '.join(sorted(changed)) or 'no changes'})")
    return db_obj

def delete_transaction(db: Session, *, db_obj: Transaction) -> None:
    """
    Delete a transaction together with every revenue share line item it produced.
    """
    transaction_id = db_obj.id

    def operation() -> None:
        existing = crud_revenue_share.get_revenue_shares_by_transaction(db, transaction_id=transaction_id)
        crud_agent.lock_agents(db, sorted({share.recipient_agent_id for share in existing}))
        # Line items go with the transaction through the delete-orphan cascade
        db.delete(db_obj)
        db.flush()

    run_in_transaction(db, operation)
    logger.info(f"Transaction {transaction_id} and its revenue share deleted")

def get_transaction(db: Session, transaction_id: int) -> Optional[Transaction]:
    return (
        db.query(Transaction)
        .options(joinedload(Transaction.agent), selectinload(Transaction.revenue_shares))
        .filter(Transaction.id == transaction_id)
        .first()
    )

def get_transactions(db: Session, *, skip: int = 0, limit: int = 100) -> List[Transaction]:
    return (
        db.query(Transaction)
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_transactions_by_agent(
    db: Session, *, agent_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None,
    skip: int = 0, limit: Optional[int] = 100
) -> List[Transaction]:
    query = db.query(Transaction).filter(Transaction.agent_id == agent_id)
    if start_date is not None:
        query = query.filter(Transaction.transaction_date >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.transaction_date <= end_date)
    return (
        query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def get_filtered_transactions(
    db: Session,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    agent_id: Optional[int] = None,
    transaction_type: Optional[str] = None,
    lead_source: Optional[str] = None,
    address: Optional[str] = None,
    zip_code: Optional[str] = None,
    min_sale_amount: Optional[Decimal] = None,
    max_sale_amount: Optional[Decimal] = None,
) -> List[Transaction]:
    """Transactions matching every filter given, newest first, with their line items loaded."""
    query = db.query(Transaction).options(selectinload(Transaction.revenue_shares))
    if start_date is not None:
        query = query.filter(Transaction.transaction_date >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.transaction_date <= end_date)
    if agent_id is not None:
        query = query.filter(Transaction.agent_id == agent_id)
    if transaction_type is not None:
        query = query.filter(Transaction.transaction_type == transaction_type)
    if lead_source is not None:
        query = query.filter(Transaction.lead_source == lead_source)
    if address:
        query = query.filter(Transaction.property_address.ilike(f"%{address}%"))
    if zip_code:
        query = query.filter(Transaction.property_address.like(f"%{zip_code}%"))
    if min_sale_amount is not None:
        query = query.filter(Transaction.sale_amount >= min_sale_amount)
    if max_sale_amount is not None:
        query = query.filter(Transaction.sale_amount <= max_sale_amount)
    return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()

import logging
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from app.core import business_rules as rules
from app.core import cap_tracker
from app.core.commission_splitter import to_cents
from app.core.exceptions import MissingAgentError
from app.core.sponsor_chain import resolve_sponsor_chain
from app.crud import crud_agent, crud_revenue_share
from app.models.agent import Agent
from app.models.enums import AgentType
from app.models.revenue_share import RevenueShare
from app.models.transaction import Transaction
from app.schemas.revenue_share import RevenueShareCreate

logger = logging.getLogger(__name__)

def sponsor_rate_for(closer: Agent) -> Decimal:
    """Per-tier share of company GCI, chosen by the closing agent's type (not the sponsor's)."""
    if closer.agent_type == AgentType.PRINCIPAL:
        return rules.PRINCIPAL_SPONSOR_RATE
    return rules.SUPPORT_SPONSOR_RATE

def compute_revenue_shares(db: Session, transaction: Transaction) -> List[RevenueShareCreate]:
    """
    Build the cap-clamped revenue share line items for one transaction.

    Every sponsor up to five levels gets a line item in tier order; sponsors
    whose cap is used up get a zero amount, so the breakdown still records who
    was considered and why nothing was paid. Raises DataIntegrityError when the
    closer or a sponsor is missing or the chain loops; nothing is returned then.
    """
    closer = db.query(Agent).filter(Agent.id == transaction.agent_id).first()
    if closer is None:
        logger.error(f"Transaction {transaction.id} references missing closing agent {transaction.agent_id}")
        raise MissingAgentError(transaction.agent_id, f"closing agent of transaction {transaction.id}")

    sponsors = resolve_sponsor_chain(db, closer)
    if not sponsors:
        logger.info(f"Agent {closer.id} has no sponsor; no revenue share for transaction {transaction.id}")
        return []

    # Serializes the cap read and line item write per recipient across concurrent transactions
    crud_agent.lock_agents(db, [sponsor.id for sponsor in sponsors])

    company_gci = Decimal(transaction.company_gci)
    rate = sponsor_rate_for(closer)
    proposed = to_cents(company_gci * rate)

    items: List[RevenueShareCreate] = []
    for tier, sponsor in enumerate(sponsors, start=1):
        amount, status = cap_tracker.clamp_payout(
            db,
            sponsor,
            proposed,
            transaction.transaction_date,
            exclude_transaction_id=transaction.id,
        )
        items.append(RevenueShareCreate(
            transaction_id=transaction.id,
            source_agent_id=closer.id,
            recipient_agent_id=sponsor.id,
            tier=tier,
            amount=amount,
            proposed_amount=proposed,
            calculation_details={
                "closer_agent_type": AgentType(closer.agent_type).value,
                "company_gci": str(company_gci),
                "rate": str(rate),
                "recipient_agent_type": AgentType(sponsor.agent_type).value,
                "recipient_cap_type": sponsor.cap_type,
                "max_allowance": str(status.max_allowance),
                "already_paid": str(status.already_paid),
                "window_start": status.window_start.isoformat(),
                "window_end": status.window_end.isoformat(),
                "capped": amount < proposed,
            },
        ))
        logger.info(
            f"Transaction {transaction.id}: tier {tier} sponsor {sponsor.id} proposed {proposed}, paid {amount}"
        )
    return items

def record_revenue_shares(db: Session, transaction: Transaction) -> List[RevenueShare]:
    """
    Replace the transaction's line items with a freshly computed set.

    Only stages the changes; the caller commits them together with the
    transaction itself.
    """
    logger.info(f"Computing revenue share for transaction {transaction.id}")
    removed = crud_revenue_share.delete_revenue_shares_for_transaction(db, transaction_id=transaction.id)
    if removed:
        logger.info(f"Removed {removed} previous revenue share rows for transaction {transaction.id}")
    db.expire(transaction, ["revenue_shares"])
    items = compute_revenue_shares(db, transaction)
    created = crud_revenue_share.add_revenue_shares(db, items=items)
    db.expire(transaction, ["revenue_shares"])
    logger.info(f"Revenue share for transaction {transaction.id} finished: {len(created)} line items")
    return created

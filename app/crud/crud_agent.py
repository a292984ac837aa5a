from datetime import date
from decimal import Decimal
from typing import Optional, List, Tuple

from sqlalchemy.orm import Session

from app.core.cap_tracker import anniversary_window
from app.core.exceptions import DataIntegrityError
from app.core.sponsor_chain import would_create_cycle
from app.models.agent import Agent
from app.models.transaction import Transaction
from app.schemas.agent import AgentCreate, AgentUpdate
from app.crud import crud_revenue_share

def get_agent(db: Session, agent_id: int) -> Optional[Agent]:
    return db.query(Agent).filter(Agent.id == agent_id).first()

def get_agents(db: Session, *, skip: int = 0, limit: int = 100) -> List[Agent]:
    return db.query(Agent).order_by(Agent.name, Agent.id).offset(skip).limit(limit).all()

def get_root_agents(db: Session) -> List[Agent]:
    """Agents without a sponsor: the roots of the sponsor forest."""
    return db.query(Agent).filter(Agent.sponsor_id.is_(None)).order_by(Agent.name, Agent.id).all()

def get_direct_downline(db: Session, *, sponsor_id: int) -> List[Agent]:
    return db.query(Agent).filter(Agent.sponsor_id == sponsor_id).order_by(Agent.name, Agent.id).all()

def _check_sponsor(db: Session, agent_id: Optional[int], sponsor_id: int) -> None:
    # would_create_cycle raises MissingAgentError for an unknown sponsor
    if would_create_cycle(db, agent_id, sponsor_id):
        raise DataIntegrityError(
            f"Agent {sponsor_id} cannot sponsor agent {agent_id}: the sponsor chain would loop"
        )

def create_agent(db: Session, *, obj_in: AgentCreate) -> Agent:
    if obj_in.sponsor_id is not None:
        _check_sponsor(db, None, obj_in.sponsor_id)

    db_obj = Agent(
        name=obj_in.name,
        email=obj_in.email,
        agent_type=obj_in.agent_type.value,
        sponsor_id=obj_in.sponsor_id,
        cap_type=obj_in.cap_type.value if obj_in.cap_type else None,
        anniversary_date=obj_in.anniversary_date,
        total_gci_ytd=obj_in.total_gci_ytd,
        career_sales_count=obj_in.career_sales_count,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def update_agent(db: Session, *, db_obj: Agent, obj_in: AgentUpdate) -> Agent:
    update_data = obj_in.model_dump(exclude_unset=True)

    if update_data.get("sponsor_id") is not None and update_data["sponsor_id"] != db_obj.sponsor_id:
        _check_sponsor(db, db_obj.id, update_data["sponsor_id"])

    for field in ("agent_type", "cap_type"):
        if update_data.get(field) is not None:
            update_data[field] = update_data[field].value

    for field, value in update_data.items():
        setattr(db_obj, field, value)

    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj

def delete_agent(db: Session, *, db_obj: Agent) -> None:
    """
    Delete an agent that nothing else depends on.

    Agents with a downline, transactions or revenue share history are kept so
    sponsor chains and payout records stay intact.
    """
    if get_direct_downline(db, sponsor_id=db_obj.id):
        raise DataIntegrityError(
            "Cannot delete agent with sponsored agents. Reassign or delete the sponsored agents first."
        )
    if db.query(Transaction).filter(Transaction.agent_id == db_obj.id).count():
        raise DataIntegrityError("Cannot delete agent with transactions.")
    if crud_revenue_share.count_revenue_shares_for_agent(db, agent_id=db_obj.id):
        raise DataIntegrityError("Cannot delete agent with revenue share records.")
    db.delete(db_obj)
    db.commit()

def lock_agents(db: Session, agent_ids: List[int]) -> None:
    """Take row locks on the given agents, in id order."""
    if agent_ids:
        db.query(Agent).filter(Agent.id.in_(agent_ids)).order_by(Agent.id).with_for_update().all()

def get_production_summary(db: Session, *, agent: Agent, as_of: date) -> Tuple[Decimal, int]:
    """
    GCI produced in the anniversary year containing `as_of` and the career
    sales count, from the agent's transactions dated on or before `as_of`.
    """
    window_start, _ = anniversary_window(agent.anniversary_date, as_of)
    query = db.query(Transaction).filter(
        Transaction.agent_id == agent.id,
        Transaction.transaction_date <= as_of,
    )
    transactions = query.all()

    gci = sum(
        (Decimal(t.total_commission) for t in transactions if t.transaction_date >= window_start),
        Decimal("0"),
    )
    return gci, len(transactions)

def refresh_production_totals(db: Session, *, agent: Agent, as_of: date) -> Agent:
    """
    Recompute the cached `total_gci_ytd` and `career_sales_count` from stored
    transactions.
    """
    gci, count = get_production_summary(db, agent=agent, as_of=as_of)
    agent.total_gci_ytd = gci
    agent.career_sales_count = count
    db.add(agent)
    db.commit()
    db.refresh(agent)
    return agent

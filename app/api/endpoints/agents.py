import logging
from datetime import date
from typing import List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app import schemas
from app.api.errors import to_http_exception
from app.core import dependencies
from app.core.exceptions import BrokerageError, SponsorCycleError
from app.crud import crud_agent, crud_revenue_share, crud_transaction
from app.db.session import get_db
from app.models.agent import Agent as AgentModel
from app.models.user import User as UserModel

logger = logging.getLogger(__name__)
router = APIRouter()

def _get_agent_or_404(db: Session, agent_id: int) -> AgentModel:
    agent = crud_agent.get_agent(db, agent_id=agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent

def _downline_node(db: Session, agent: AgentModel, visited: Set[int]) -> schemas.AgentWithDownline:
    visited.add(agent.id)
    children = []
    for child in crud_agent.get_direct_downline(db, sponsor_id=agent.id):
        if child.id in visited:
            raise SponsorCycleError(agent.id, child.id)
        children.append(_downline_node(db, child, visited))
    return schemas.AgentWithDownline(
        **schemas.Agent.model_validate(agent).model_dump(),
        downline=children,
        total_earnings=crud_revenue_share.sum_paid_to_recipient(db, recipient_agent_id=agent.id),
    )

@router.get("/", response_model=List[schemas.Agent])
def read_agents(
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    return crud_agent.get_agents(db, skip=skip, limit=limit)

@router.get("/root", response_model=List[schemas.Agent])
def read_root_agents(
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Agents without a sponsor.
    """
    return crud_agent.get_root_agents(db)

@router.post("/", response_model=schemas.Agent, status_code=201)
def create_agent(
    agent_in: schemas.AgentCreate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    try:
        agent = crud_agent.create_agent(db, obj_in=agent_in)
    except BrokerageError as exc:
        raise to_http_exception(exc)
    logger.info(f"Agent {agent.id} created by {current_user.username}")
    return agent

@router.get("/{agent_id}", response_model=schemas.Agent)
def read_agent(
    agent_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    dependencies.ensure_agent_access(current_user, agent_id)
    return _get_agent_or_404(db, agent_id)

@router.put("/{agent_id}", response_model=schemas.Agent)
def update_agent(
    agent_id: int,
    agent_in: schemas.AgentUpdate,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    agent = _get_agent_or_404(db, agent_id)
    try:
        return crud_agent.update_agent(db, db_obj=agent, obj_in=agent_in)
    except BrokerageError as exc:
        raise to_http_exception(exc)

@router.delete("/{agent_id}", response_model=schemas.Agent)
def delete_agent(
    agent_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    agent = _get_agent_or_404(db, agent_id)
    deleted = schemas.Agent.model_validate(agent)
    try:
        crud_agent.delete_agent(db, db_obj=agent)
    except BrokerageError as exc:
        raise to_http_exception(exc)
    logger.info(f"Agent {agent_id} deleted by {current_user.username}")
    return deleted

@router.get("/{agent_id}/downline", response_model=schemas.AgentWithDownline)
def read_agent_downline(
    agent_id: int,
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Full sponsorship tree below an agent, with the revenue share each member has received.
    """
    dependencies.ensure_agent_access(current_user, agent_id)
    agent = _get_agent_or_404(db, agent_id)
    try:
        return _downline_node(db, agent, set())
    except BrokerageError as exc:
        raise to_http_exception(exc)

@router.post("/{agent_id}/refresh-totals", response_model=schemas.Agent)
def refresh_agent_totals(
    agent_id: int,
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: UserModel = Depends(dependencies.get_current_admin)
):
    """
    Recompute the agent's GCI for the current anniversary year and career
    sales count from recorded transactions.
    """
    agent = _get_agent_or_404(db, agent_id)
    return crud_agent.refresh_production_totals(db, agent=agent, as_of=as_of or date.today())

@router.get("/{agent_id}/transactions", response_model=List[schemas.Transaction])
def read_agent_transactions(
    agent_id: int,
    db: Session = Depends(get_db),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    dependencies.ensure_agent_access(current_user, agent_id)
    _get_agent_or_404(db, agent_id)
    return crud_transaction.get_transactions_by_agent(
        db, agent_id=agent_id, start_date=start_date, end_date=end_date, skip=skip, limit=limit
    )

@router.get("/{agent_id}/revenue-shares", response_model=List[schemas.RevenueShare])
def read_agent_revenue_shares(
    agent_id: int,
    db: Session = Depends(get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: UserModel = Depends(dependencies.get_current_active_user)
):
    """
    Line items where the agent received revenue share or closed the transaction.
    """
    dependencies.ensure_agent_access(current_user, agent_id)
    _get_agent_or_404(db, agent_id)
    return crud_revenue_share.get_revenue_shares_by_agent(db, agent_id=agent_id, skip=skip, limit=limit)

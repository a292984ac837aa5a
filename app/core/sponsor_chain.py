"""
Upline walking for the sponsor forest.

Sponsorship should never loop, but the walk does not trust that: every step
checks the ids already seen and aborts with SponsorCycleError on a repeat,
so a corrupted chain can never be paid twice or walked forever.
"""
import logging
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.business_rules import MAX_SPONSOR_DEPTH
from app.core.exceptions import MissingAgentError, SponsorCycleError
from app.models.agent import Agent

logger = logging.getLogger(__name__)

def iter_sponsor_ids(
    agent_id: int,
    get_sponsor_id: Callable[[int], Optional[int]],
    max_depth: Optional[int] = MAX_SPONSOR_DEPTH,
) -> Iterator[Tuple[int, int]]:
    """
    Yield (tier, sponsor_id) pairs going up from `agent_id`; tier 1 is the direct sponsor.

    Stops at the first agent without a sponsor or after `max_depth` steps
    (None walks to the root). Calling it again restarts the walk.
    """
    visited = {agent_id}
    current_id = agent_id
    tier = 0
    while max_depth is None or tier < max_depth:
        sponsor_id = get_sponsor_id(current_id)
        if sponsor_id is None:
            return
        if sponsor_id in visited:
            logger.error(
                f"Sponsor cycle detected walking up from agent {agent_id}: "
                f"agent {current_id} points back to agent {sponsor_id}"
            )
            raise SponsorCycleError(agent_id, sponsor_id)
        visited.add(sponsor_id)
        tier += 1
        yield tier, sponsor_id
        current_id = sponsor_id

def resolve_sponsor_chain(db: Session, agent: Agent, max_depth: int = MAX_SPONSOR_DEPTH) -> List[Agent]:
    """Ordered sponsors of `agent`, direct sponsor first, at most `max_depth` of them."""
    loaded: Dict[int, Agent] = {agent.id: agent}

    def load(agent_id: int) -> Agent:
        if agent_id not in loaded:
            found = db.query(Agent).filter(Agent.id == agent_id).first()
            if found is None:
                logger.error(f"Sponsor chain of agent {agent.id} references missing agent {agent_id}")
                raise MissingAgentError(agent_id, f"sponsor in the chain of agent {agent.id}")
            loaded[agent_id] = found
        return loaded[agent_id]

    def get_sponsor_id(agent_id: int) -> Optional[int]:
        return load(agent_id).sponsor_id

    return [load(sponsor_id) for _, sponsor_id in iter_sponsor_ids(agent.id, get_sponsor_id, max_depth)]

def would_create_cycle(db: Session, agent_id: Optional[int], new_sponsor_id: int) -> bool:
    """True if making `new_sponsor_id` the sponsor of `agent_id` would close a loop."""
    if agent_id is not None and agent_id == new_sponsor_id:
        return True
    sponsor_map = dict(db.query(Agent.id, Agent.sponsor_id).all())
    if new_sponsor_id not in sponsor_map:
        raise MissingAgentError(new_sponsor_id, "requested sponsor")
    if agent_id is None:
        # A brand new agent has no downline yet, so it cannot be part of a loop
        return False

    def get_sponsor_id(current_id: int) -> Optional[int]:
        return sponsor_map.get(current_id)

    for _, ancestor_id in iter_sponsor_ids(new_sponsor_id, get_sponsor_id, max_depth=None):
        if ancestor_id == agent_id:
            return True
    return False

"""
Annual revenue share caps.

Each recipient's allowance resets on their own anniversary date. What has been
paid so far is always recomputed from stored RevenueShare rows for the window,
never kept in a running counter.
"""
import calendar
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core import business_rules as rules
from app.crud import crud_revenue_share
from app.models.agent import Agent
from app.models.enums import AgentType, CapType
from app.schemas.revenue_share import CapStatus

logger = logging.getLogger(__name__)

def anniversary_in_year(anniversary_date: date, year: int) -> date:
    # 29 February anniversaries fall on 28 February in non-leap years
    if anniversary_date.month == 2 and anniversary_date.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return anniversary_date.replace(year=year)

def anniversary_window(anniversary_date: date, reference_date: date) -> Tuple[date, date]:
    """
    Anniversary year containing `reference_date`, as inclusive (start, end) dates.

    Start is the latest anniversary on or before the reference date; end is the
    day before the following anniversary.
    """
    start = anniversary_in_year(anniversary_date, reference_date.year)
    if start > reference_date:
        start = anniversary_in_year(anniversary_date, reference_date.year - 1)
    end = anniversary_in_year(anniversary_date, start.year + 1) - timedelta(days=1)
    return start, end

def max_annual_allowance(agent: Agent) -> Decimal:
    if agent.agent_type == AgentType.PRINCIPAL:
        if agent.cap_type == CapType.TEAM:
            return rules.PRINCIPAL_ANNUAL_CAP[CapType.TEAM]
        return rules.PRINCIPAL_ANNUAL_CAP[CapType.STANDARD]
    return rules.SUPPORT_ANNUAL_CAP

def remaining_allowance(max_allowance: Decimal, already_paid: Decimal) -> Decimal:
    remaining = max_allowance - already_paid
    return remaining if remaining > 0 else Decimal("0")

def clamp_to_cap(proposed_amount: Decimal, remaining: Decimal) -> Decimal:
    if remaining <= 0 or proposed_amount <= 0:
        return Decimal("0")
    return min(proposed_amount, remaining)

def get_cap_status(
    db: Session,
    recipient: Agent,
    reference_date: date,
    *,
    exclude_transaction_id: Optional[int] = None,
) -> CapStatus:
    window_start, window_end = anniversary_window(recipient.anniversary_date, reference_date)
    already_paid = crud_revenue_share.sum_paid_to_recipient(
        db,
        recipient_agent_id=recipient.id,
        start_date=window_start,
        end_date=window_end,
        exclude_transaction_id=exclude_transaction_id,
    )
    max_allowance = max_annual_allowance(recipient)
    return CapStatus(
        agent_id=recipient.id,
        window_start=window_start,
        window_end=window_end,
        max_allowance=max_allowance,
        already_paid=already_paid,
        remaining=remaining_allowance(max_allowance, already_paid),
    )

def clamp_payout(
    db: Session,
    recipient: Agent,
    proposed_amount: Decimal,
    reference_date: date,
    *,
    exclude_transaction_id: Optional[int] = None,
) -> Tuple[Decimal, CapStatus]:
    """Amount the recipient may actually receive, with the cap status it was clamped against."""
    status = get_cap_status(db, recipient, reference_date, exclude_transaction_id=exclude_transaction_id)
    amount = clamp_to_cap(proposed_amount, status.remaining)
    if amount < proposed_amount:
        logger.info(
            f"Revenue share to agent {recipient.id} clamped from {proposed_amount} to {amount} "
            f"(paid {status.already_paid} of {status.max_allowance} for {status.window_start}..{status.window_end})"
        )
    return amount, status

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.core import business_rules as rules
from app.core.exceptions import CommissionValidationError
from app.models.agent import Agent
from app.models.enums import AgentType
from app.schemas.transaction import CommissionSplit

logger = logging.getLogger(__name__)

def to_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(rules.CENTS, rounding=ROUND_HALF_UP)

def calculate_base_commission(sale_amount: Decimal, commission_percentage: Decimal) -> Decimal:
    """Gross commission on the sale, before any compliance fee pass-through."""
    sale_amount = Decimal(sale_amount)
    commission_percentage = Decimal(commission_percentage)
    if sale_amount <= 0:
        raise CommissionValidationError(f"Sale amount must be positive, got {sale_amount}")
    if commission_percentage <= 0 or commission_percentage > 100:
        raise CommissionValidationError(
            f"Commission percentage must be greater than 0 and at most 100, got {commission_percentage}"
        )
    return sale_amount * commission_percentage / Decimal(100)

def calculate_company_gci(base_commission: Decimal) -> Decimal:
    return to_cents(base_commission * rules.COMPANY_GCI_RATE)

def company_lead_percentage(career_sales_count: int) -> Decimal:
    if career_sales_count < 0:
        raise CommissionValidationError("Career sales count cannot be negative")
    if career_sales_count < rules.NEW_AGENT_SALES_THRESHOLD:
        return rules.COMPANY_LEAD_NEW_AGENT_PERCENTAGE
    return rules.COMPANY_LEAD_EXPERIENCED_PERCENTAGE

def support_agent_percentage(trailing_gci: Decimal) -> Decimal:
    if trailing_gci < 0:
        raise CommissionValidationError("Trailing GCI cannot be negative")
    return rules.support_tier_for_gci(trailing_gci).percentage

def agent_commission_percentage(
    agent: Agent,
    *,
    is_company_provided_lead: bool,
    career_sales_count: int,
    trailing_gci: Decimal,
) -> Decimal:
    if is_company_provided_lead:
        return company_lead_percentage(career_sales_count)
    if agent.agent_type == AgentType.SUPPORT:
        return support_agent_percentage(trailing_gci)
    return rules.PRINCIPAL_DEFAULT_PERCENTAGE

def split_commission(
    sale_amount: Decimal,
    commission_percentage: Decimal,
    agent: Agent,
    *,
    is_company_provided_lead: bool = False,
    career_sales_count: int = 0,
    compliance_fee_paid_by_agent: bool = True,
    company_gci: Optional[Decimal] = None,
    trailing_gci: Optional[Decimal] = None,
) -> CommissionSplit:
    """
    Split a transaction's commission between the closing agent and the company.

    The compliance fee is a pass-through: when the client pays it, it is added
    to the total commission but company GCI and the agent's percentage are still
    applied to the base commission only. When the agent pays it, it comes off
    the agent's share.

    `company_gci` overrides the standard 15% retention. `trailing_gci` defaults
    to the agent's GCI for the current anniversary year and picks the support
    agent band. The agent's amount is clamped so that company GCI plus agent
    commission never exceeds the total commission.
    """
    base_commission = calculate_base_commission(sale_amount, commission_percentage)
    total_commission = base_commission
    if not compliance_fee_paid_by_agent:
        total_commission = base_commission + rules.COMPLIANCE_FEE
    total_commission = to_cents(total_commission)

    if company_gci is None:
        company_gci = calculate_company_gci(base_commission)
    else:
        company_gci = to_cents(company_gci)
        if company_gci < 0 or company_gci > total_commission:
            raise CommissionValidationError(
                f"Company GCI {company_gci} must be between 0 and the total commission {total_commission}"
            )

    if trailing_gci is None:
        trailing_gci = Decimal(agent.total_gci_ytd or 0)

    percentage = agent_commission_percentage(
        agent,
        is_company_provided_lead=is_company_provided_lead,
        career_sales_count=career_sales_count,
        trailing_gci=Decimal(trailing_gci),
    )

    agent_amount = base_commission * percentage / Decimal(100)
    compliance_fee = Decimal("0")
    if compliance_fee_paid_by_agent:
        compliance_fee = rules.COMPLIANCE_FEE
        agent_amount -= compliance_fee

    if agent_amount < 0:
        logger.warning(f"Negative commission calculated for agent {agent.id}: {agent_amount}; clamping to 0")
        agent_amount = Decimal("0")

    ceiling = total_commission - company_gci
    if agent_amount > ceiling:
        logger.info(
            f"Agent {agent.id} commission {to_cents(agent_amount)} exceeds what remains after company GCI; "
            f"limiting to {ceiling}"
        )
        agent_amount = ceiling

    return CommissionSplit(
        total_commission=total_commission,
        company_gci=company_gci,
        agent_commission_percentage=percentage,
        agent_commission_amount=to_cents(agent_amount),
        compliance_fee=compliance_fee,
    )

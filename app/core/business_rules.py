"""
Fixed business parameters for commission splits and revenue share.

These come from the brokerage's compensation plan and are not meant to be
tuned per request or per environment.
"""
from decimal import Decimal
from typing import NamedTuple, Optional, Tuple

from app.models.enums import CapType

CENTS = Decimal("0.01")

# Company retains 15% of the base commission as its GCI
COMPANY_GCI_RATE = Decimal("0.15")

# Revenue share paid to every sponsor tier, chosen by the *closing* agent's type.
# Flat across all five tiers, not a decaying schedule.
PRINCIPAL_SPONSOR_RATE = Decimal("0.125")
SUPPORT_SPONSOR_RATE = Decimal("0.02")

MAX_SPONSOR_DEPTH = 5

PRINCIPAL_ANNUAL_CAP = {
    CapType.STANDARD: Decimal("2000"),
    CapType.TEAM: Decimal("1000"),
}
SUPPORT_ANNUAL_CAP = Decimal("2000")

COMPLIANCE_FEE = Decimal("500")

PRINCIPAL_DEFAULT_PERCENTAGE = Decimal("80")

# Company-provided leads
NEW_AGENT_SALES_THRESHOLD = 3
COMPANY_LEAD_NEW_AGENT_PERCENTAGE = Decimal("30")
COMPANY_LEAD_EXPERIENCED_PERCENTAGE = Decimal("40")


class SupportTier(NamedTuple):
    level: int
    min_gci: Decimal
    max_gci: Optional[Decimal]  # None means open-ended
    percentage: Decimal


SUPPORT_AGENT_TIERS: Tuple[SupportTier, ...] = (
    SupportTier(1, Decimal("0"), Decimal("40000"), Decimal("50")),
    SupportTier(2, Decimal("40000"), Decimal("80000"), Decimal("60")),
    SupportTier(3, Decimal("80000"), Decimal("150000"), Decimal("70")),
    SupportTier(4, Decimal("150000"), Decimal("225000"), Decimal("75")),
    SupportTier(5, Decimal("225000"), Decimal("310000"), Decimal("80")),
    SupportTier(6, Decimal("310000"), Decimal("400000"), Decimal("84")),
    SupportTier(7, Decimal("400000"), Decimal("500000"), Decimal("88")),
    SupportTier(8, Decimal("500000"), Decimal("650000"), Decimal("90")),
    SupportTier(9, Decimal("650000"), None, Decimal("92")),
)


def support_tier_for_gci(total_gci: Decimal) -> SupportTier:
    """Band lookup; a GCI exactly on a threshold belongs to the higher band."""
    for tier in SUPPORT_AGENT_TIERS:
        if total_gci >= tier.min_gci and (tier.max_gci is None or total_gci < tier.max_gci):
            return tier
    # Only reachable for negative GCI, which callers reject before looking up a band
    raise ValueError(f"No support tier for GCI {total_gci}")

import enum


class AgentType(str, enum.Enum):
    PRINCIPAL = "principal"
    SUPPORT = "support"


class CapType(str, enum.Enum):
    STANDARD = "standard"
    TEAM = "team"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    AGENT = "agent"


class TransactionType(str, enum.Enum):
    BUYER = "buyer"
    SELLER = "seller"


class LeadSource(str, enum.Enum):
    SELF_GENERATED = "self_generated"
    COMPANY_PROVIDED = "company_provided"
    REFERRAL = "referral"
    SOI = "soi"
    ZILLOW = "zillow"
    GOOGLE = "google"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    OPEN_HOUSE = "open_house"
    EXPIRED = "expired"
    PAST_CLIENT = "past_client"
    OTHER = "other"


# Lead sources that count as company-provided when the flag is not given explicitly
COMPANY_PROVIDED_LEAD_SOURCES = {LeadSource.COMPANY_PROVIDED, LeadSource.ZILLOW, LeadSource.GOOGLE}

from .token import Token, TokenData
from .agent import (
    AgentBase,
    AgentCreate,
    AgentUpdate,
    Agent,
    AgentWithDownline,
)
from .revenue_share import (
    RevenueShareBase,
    RevenueShareCreate,
    RevenueShare,
    CapStatus,
)
from .transaction import (
    TransactionBase,
    TransactionCreate,
    TransactionUpdate,
    Transaction,
    TransactionWithRevenueShares,
    CommissionSplit,
    SplitPreviewRequest,
)
from .user import UserBase, UserCreate, UserUpdate, PasswordReset, User
from .report import (
    AgentTaxSummary,
    ProductionTotals,
    AgentPerformance,
    LeadSourceBreakdown,
    ZipCodeBreakdown,
    IncomeDistribution,
)

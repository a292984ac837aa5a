# Import every model so Base.metadata knows all tables before create_all
from app.db.base_class import Base  # noqa: F401
from app.models.agent import Agent  # noqa: F401
from app.models.transaction import Transaction  # noqa: F401
from app.models.revenue_share import RevenueShare  # noqa: F401
from app.models.user import User  # noqa: F401

from decimal import Decimal

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.core.business_rules import support_tier_for_gci
from app.models.enums import AgentType

class Agent(Base):
    __tablename__ = "agent"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    agent_type = Column(String(20), nullable=False)  # AgentType value
    sponsor_id = Column(Integer, ForeignKey("agent.id"), nullable=True, index=True)
    cap_type = Column(String(20), nullable=True)  # CapType value, meaningful for principals only
    anniversary_date = Column(Date, nullable=False)
    total_gci_ytd = Column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    career_sales_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Self-referential sponsor / downline relationship
    sponsor = relationship("Agent", remote_side=[id], back_populates="downline")
    downline = relationship("Agent", back_populates="sponsor")

    transactions = relationship("Transaction", back_populates="agent")

    @property
    def current_tier(self):
        """Commission band for support agents, derived from GCI this anniversary year."""
        if self.agent_type != AgentType.SUPPORT:
            return None
        return support_tier_for_gci(Decimal(self.total_gci_ytd or 0)).level

    def __repr__(self):
        return f"<Agent(id={self.id}, name='{self.name}', type='{self.agent_type}', sponsor_id={self.sponsor_id})>"

from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey, JSON, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base

class RevenueShare(Base):
    __tablename__ = "revenue_share"
    __table_args__ = (
        UniqueConstraint("transaction_id", "recipient_agent_id", name="uq_revenue_share_transaction_recipient"),
        UniqueConstraint("transaction_id", "tier", name="uq_revenue_share_transaction_tier"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(Integer, ForeignKey("transaction.id", ondelete="CASCADE"), nullable=False, index=True)
    source_agent_id = Column(Integer, ForeignKey("agent.id"), nullable=False, index=True)  # Closer whose sale generated it
    recipient_agent_id = Column(Integer, ForeignKey("agent.id"), nullable=False, index=True)  # Sponsor being paid
    tier = Column(Integer, nullable=False)  # 1-5, distance up the sponsor chain
    amount = Column(Numeric(12, 2), nullable=False)  # After cap clamping
    proposed_amount = Column(Numeric(12, 2), nullable=False)  # Before cap clamping
    calculation_details = Column(JSON, nullable=True)  # Rule, rate, cap window and usage at calculation time

    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    transaction = relationship("Transaction", back_populates="revenue_shares")
    source_agent = relationship("Agent", foreign_keys=[source_agent_id])
    recipient_agent = relationship("Agent", foreign_keys=[recipient_agent_id])

    def __repr__(self):
        return f"<RevenueShare(id={self.id}, transaction_id={self.transaction_id}, recipient={self.recipient_agent_id}, tier={self.tier}, amount={self.amount})>"

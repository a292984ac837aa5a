from decimal import Decimal

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship

from app.db.base_class import Base

class Transaction(Base):
    __tablename__ = "transaction"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey("agent.id"), nullable=False, index=True)  # Closing agent
    property_address = Column(String(500), nullable=False)
    sale_amount = Column(Numeric(14, 2), nullable=False)
    commission_percentage = Column(Numeric(6, 3), nullable=False)
    transaction_date = Column(Date, nullable=False, index=True)

    # Split figures, written by the commission splitter
    total_commission = Column(Numeric(14, 2), nullable=False)
    company_gci = Column(Numeric(14, 2), nullable=False)
    company_gci_override = Column(Numeric(14, 2), nullable=True)  # Manual retention, replaces the 15% when set
    agent_commission_percentage = Column(Numeric(6, 3), nullable=False)
    agent_commission_amount = Column(Numeric(14, 2), nullable=False)
    compliance_fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))  # Deducted from the agent

    is_company_provided = Column(Boolean, nullable=False, default=False)
    compliance_fee_paid_by_client = Column(Boolean, nullable=False, default=False)
    lead_source = Column(String(50), nullable=True)
    transaction_type = Column(String(20), nullable=False, default="buyer")
    client_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    agent = relationship("Agent", back_populates="transactions")
    revenue_shares = relationship(
        "RevenueShare",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="RevenueShare.tier",
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, agent_id={self.agent_id}, sale_amount={self.sale_amount}, date={self.transaction_date})>"

from sqlalchemy import Column, Integer, DateTime, Text, Numeric, ForeignKey
from loanbook.core.clock import utcnow
from loanbook.core.database import Base, enum_column
import enum


class PaymentStatus(str, enum.Enum):
    """Payment status; pending is the only non-terminal state"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    
    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(DateTime, nullable=False)
    status = Column(enum_column(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

from sqlalchemy import Column, Integer, Boolean, DateTime, Text, Numeric, ForeignKey
from loanbook.core.clock import utcnow
from loanbook.core.database import Base, enum_column
import enum


class LoanStatus(str, enum.Enum):
    """Loan lifecycle status"""
    PENDING = "pending"
    ACTIVE = "active"
    PAID = "paid"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"


class ApprovalParty(str, enum.Enum):
    """Party giving one half of the dual approval"""
    US = "us"
    CUSTOMER = "customer"


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # Terms
    amount = Column(Numeric(15, 2), nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)  # percent over the full term
    term_months = Column(Integer, nullable=False)
    
    # Lifecycle
    status = Column(enum_column(LoanStatus, "loan_status"), default=LoanStatus.PENDING, nullable=False, index=True)
    approved_by_us = Column(Boolean, default=False, nullable=False)
    approved_by_customer = Column(Boolean, default=False, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    
    purpose = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

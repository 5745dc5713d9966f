from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date
from loanbook.core.clock import utcnow
from loanbook.core.database import Base


class User(Base):
    """Borrower, agent or admin account"""
    __tablename__ = "users"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)
    
    # Personal Information
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    fiscal_id = Column(String(50), unique=True, nullable=True)
    birthday = Column(Date, nullable=True)
    country = Column(String(100), nullable=True)
    address = Column(String(255), nullable=True)
    
    # Contact (OTP delivery channels)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone = Column(String(20), unique=True, index=True, nullable=True)
    
    # Credit
    credit_score = Column(Integer, nullable=True)
    
    # Roles & Status
    is_agent = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_staff(self) -> bool:
        """Agents and admins act on behalf of the lender"""
        return bool(self.is_agent or self.is_admin)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

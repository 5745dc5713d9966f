from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, JSON
from loanbook.core.clock import utcnow
from loanbook.core.database import Base
import enum


class ErrorSeverity(str, enum.Enum):
    """Error severity"""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorLog(Base):
    """Application error with attribution and a resolution workflow"""
    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True, index=True)
    
    # Diagnostics
    message = Column(Text, nullable=False)
    name = Column(String(255), nullable=True)
    stack = Column(Text, nullable=True)
    code = Column(String(100), nullable=True)
    type = Column(String(100), nullable=True)
    severity = Column(String(20), nullable=False, default=ErrorSeverity.ERROR.value, index=True)
    
    # Attribution (errors can be anonymous)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id"), nullable=True)
    
    # Request context
    url = Column(String(2048), nullable=True)
    method = Column(String(10), nullable=True)
    route = Column(String(255), nullable=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(45), nullable=True)
    error_metadata = Column("metadata", JSON, nullable=True)  # "metadata" is reserved on the declarative base
    
    # Resolution
    is_resolved = Column(Boolean, default=False, nullable=False, index=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolution = Column(Text, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

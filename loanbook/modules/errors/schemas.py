from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any

from loanbook.modules.errors.models import ErrorSeverity


class ErrorLogCreate(BaseModel):
    """Error report; attribution is resolved from session_token or user_id when valid"""
    message: str
    name: Optional[str] = None
    stack: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    session_token: Optional[str] = None
    user_id: Optional[int] = None
    url: Optional[str] = None
    method: Optional[str] = None
    route: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ErrorLogFilter(BaseModel):
    severity: Optional[ErrorSeverity] = None
    user_id: Optional[int] = None
    newest_first: bool = True
    page_size: Optional[int] = Field(default=None, ge=1, le=1000)
    limit: Optional[int] = Field(default=None, ge=1)


class ErrorResolveRequest(BaseModel):
    resolution: str = Field(..., min_length=1)


class ErrorLogResponse(BaseModel):
    id: int
    message: str
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    severity: str
    user_id: Optional[int] = None
    session_id: Optional[int] = None
    url: Optional[str] = None
    method: Optional[str] = None
    route: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="error_metadata")
    is_resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    resolution: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True

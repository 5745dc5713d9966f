from pydantic import BaseModel, EmailStr, Field, model_validator
from datetime import datetime, date
from typing import List, Optional

from loanbook.modules.loans.schemas import LoanResponse


class UserCreate(BaseModel):
    """Registration requires at least one OTP channel"""
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=r"^\+?[0-9]{7,15}$")
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    fiscal_id: Optional[str] = Field(default=None, max_length=50)
    birthday: Optional[date] = None
    country: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def require_contact(self):
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        return self


class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    fiscal_id: Optional[str] = Field(default=None, max_length=50)
    birthday: Optional[date] = None
    country: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)


class BorrowerUpdate(UserProfileUpdate):
    """Staff edits, including contact details and the credit score"""
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, pattern=r"^\+?[0-9]{7,15}$")
    credit_score: Optional[int] = Field(default=None, ge=0, le=1000)


class UserResponse(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    fiscal_id: Optional[str] = None
    birthday: Optional[date] = None
    country: Optional[str] = None
    address: Optional[str] = None
    credit_score: Optional[int] = None
    is_agent: bool
    is_admin: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BorrowerDetail(UserResponse):
    loans: List[LoanResponse] = []

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from loanbook.core.database import get_db
from loanbook.core.dependencies import get_current_user, require_staff
from loanbook.modules.loans.schemas import LoanResponse
from loanbook.modules.loans.services import LoanService
from loanbook.modules.users import schemas
from loanbook.modules.users.models import User
from loanbook.modules.users.services import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    user_data: schemas.UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new borrower.
    
    - Email or phone is required; either can receive OTPs
    - Sign in afterwards with POST /api/v1/auth/otp
    """
    return await UserService(db).create_user(user_data)


@router.get("/me", response_model=schemas.UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user profile"""
    return current_user


@router.patch("/me", response_model=schemas.UserResponse)
async def update_me(
    profile: schemas.UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Complete or update the current user's profile"""
    return await UserService(db).update_profile(current_user.id, profile)


borrowers_router = APIRouter(prefix="/api/v1/borrowers", tags=["borrowers"])


@borrowers_router.get("", response_model=List[schemas.UserResponse])
async def list_borrowers(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff)
):
    """Users holding at least one loan (staff only)"""
    return await UserService(db).list_borrowers(skip=skip, limit=limit)


@borrowers_router.get("/{user_id}", response_model=schemas.BorrowerDetail)
async def get_borrower(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff)
):
    """Borrower profile with their loans (staff only)"""
    user = await UserService(db).get_user(user_id)
    detail = schemas.BorrowerDetail.model_validate(user)
    detail.loans = [LoanResponse.model_validate(loan) for loan in await LoanService(db).list_loans(user_id=user_id)]
    return detail


@borrowers_router.patch("/{user_id}", response_model=schemas.UserResponse)
async def update_borrower(
    user_id: int,
    data: schemas.BorrowerUpdate,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff)
):
    """
    Update a borrower (staff only).

    - Contact details stay unique across users
    - The credit score can only be set here
    """
    return await UserService(db).update_borrower(user_id, data)


@borrowers_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_borrower(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    staff: User = Depends(require_staff)
):
    """Soft-delete a borrower (staff only)"""
    await UserService(db).soft_delete(user_id)

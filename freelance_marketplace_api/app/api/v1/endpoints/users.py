"""
User endpoints for API v1.

Registration and login are public.  Listing, deleting and verifying
users is reserved for administrators.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from freelance_marketplace_api.app.core.exceptions import to_http_exception
from freelance_marketplace_api.app.core.security import ROLE_ADMIN, create_access_token, require_roles
from freelance_marketplace_api.app.schemas.user import Token, UserCreate, UserLogin, UserRead
from freelance_marketplace_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register_user(user: UserCreate) -> UserRead:
    """Register a new client or developer.

    The very first account of a fresh installation becomes the ADMIN.
    """
    try:
        return await UserService.create_user(user)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/login", response_model=Token)
async def login_user(credentials: UserLogin) -> Token:
    """Authenticate by e-mail and password and return a bearer token."""
    db_user = await UserService.authenticate(credentials.email, credentials.password)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return Token(access_token=create_access_token({"sub": db_user.email}))


@router.get("/", response_model=List[UserRead])
async def list_users(
    include_deleted: bool = Query(False),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> List[UserRead]:
    return await UserService.list_users(include_deleted=include_deleted)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, current_user: dict = Depends(require_roles(ROLE_ADMIN))) -> None:
    """Soft delete a user.  Deleted users disappear from search results."""
    try:
        await UserService.delete_user(user_id)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/{user_id}/verify-email", response_model=UserRead)
async def verify_email(
    user_id: int,
    verified: bool = Query(True),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> UserRead:
    try:
        return await UserService.set_email_verified(user_id, verified)
    except ValueError as e:
        raise to_http_exception(e) from e

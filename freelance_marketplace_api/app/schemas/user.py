"""
Pydantic models for user data.

Defines schemas for registering users, authenticating and reading user
information.  Passwords are accepted on input only and never returned.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import APIModel


class UserBase(APIModel):
    email: str = Field(..., examples=["jane@example.com"])
    full_name: Optional[str] = Field(None, examples=["Jane Doe"])


class UserCreate(UserBase):
    """Schema for registering a user.

    ``role`` is ``CLIENT`` or ``DEVELOPER``.  The very first account of a
    fresh installation is promoted to ``ADMIN`` regardless of the value
    sent here.
    """

    password: str = Field(..., min_length=8, examples=["strongpassword"])
    role: str = Field("CLIENT", examples=["DEVELOPER"])


class UserLogin(BaseModel):
    email: str = Field(..., examples=["jane@example.com"])
    password: str = Field(..., examples=["strongpassword"])


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(UserBase):
    """Schema for reading a user from the API."""

    id: int
    role: str = Field(..., examples=["DEVELOPER"])
    is_email_verified: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None

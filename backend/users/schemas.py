# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the user endpoints."""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Gender = Literal["MALE", "FEMALE", "OTHER"]


# -- Requests --------------------------------------------------------------


class CreateUserRequest(BaseModel):
    email: str = Field(max_length=254)
    password: str = Field(min_length=8)
    name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=15)
    avatar_url: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    is_admin: bool = False


class UpdateUserRequest(BaseModel):
    email: Optional[str] = Field(default=None, max_length=254)
    password: Optional[str] = Field(default=None, min_length=8)
    name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=15)
    avatar_url: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    is_active: Optional[bool] = None
    phone_verified: Optional[bool] = None


class UpdateProfileRequest(BaseModel):
    """Fields a user may change on their own account."""

    name: Optional[str] = Field(default=None, max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=15)
    avatar_url: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    password: Optional[str] = Field(default=None, min_length=8)


# -- Responses -------------------------------------------------------------


class UserRow(BaseModel):
    # password is never part of a response
    id: int
    email: str
    name: str
    phone_number: Optional[str] = None
    avatar_url: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    is_admin: bool
    email_verified: bool
    phone_verified: bool
    is_active: bool
    is_deleted: bool
    last_login_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserRow]


class EffectivePermissionsResponse(BaseModel):
    user_id: int
    permissions: List[str]

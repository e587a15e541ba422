# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the role and permission endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# -- Requests --------------------------------------------------------------


class CreateRoleRequest(BaseModel):
    role_name: str = Field(max_length=50)
    role_code: str = Field(max_length=50)
    description: Optional[str] = None
    permissions: Dict[str, Any] = Field(default_factory=dict)


class CreatePermissionRequest(BaseModel):
    permission_name: str = Field(max_length=100)
    permission_code: str = Field(max_length=100)
    description: Optional[str] = None
    module: Optional[str] = Field(default=None, max_length=50)
    action: Optional[str] = Field(default=None, max_length=50)
    resource: Optional[str] = Field(default=None, max_length=50)


# -- Responses -------------------------------------------------------------


class RoleRow(BaseModel):
    id: int
    role_name: str
    role_code: str
    description: Optional[str] = None
    permissions: Dict[str, Any]
    is_system: bool
    is_active: bool
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleListResponse(BaseModel):
    roles: List[RoleRow]


class PermissionRow(BaseModel):
    id: int
    permission_name: str
    permission_code: str
    description: Optional[str] = None
    module: Optional[str] = None
    action: Optional[str] = None
    resource: Optional[str] = None
    is_system: bool
    is_active: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PermissionListResponse(BaseModel):
    permissions: List[PermissionRow]


class RolePermissionRow(BaseModel):
    id: int
    role_id: int
    permission_id: int
    is_active: bool
    is_deleted: bool
    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserRoleRow(BaseModel):
    id: int
    user_id: int
    role_id: int
    is_active: bool
    is_deleted: bool
    deleted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RoleCodesResponse(BaseModel):
    role_id: int
    permissions: List[str]

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic response models for the token endpoints (hashes are never exposed)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class TokenRow(BaseModel):
    id: int
    user_id: int
    token_type: str
    expires_at: datetime
    is_revoked: bool
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenListResponse(BaseModel):
    tokens: List[TokenRow]

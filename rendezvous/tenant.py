"""Workspace / user resolution for organizer routes

Authentication lives in front of this service; callers pass the resolved
workspace and user through headers.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException

from .config import DEFAULT_WORKSPACE_ID, INTERNAL_API_KEY
from .security_utils import constant_time_compare

logger = logging.getLogger(__name__)


@dataclass
class Tenant:
    workspace_id: str
    user_id: str


async def get_tenant(
    x_workspace_id: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
    x_internal_api_key: Optional[str] = Header(None),
) -> Tenant:
    """Resolve the tenant of an organizer request"""
    if INTERNAL_API_KEY:
        if not x_internal_api_key or not constant_time_compare(x_internal_api_key, INTERNAL_API_KEY):
            logger.warning("⚠️ Rejected organizer request with missing or invalid internal API key")
            raise HTTPException(status_code=401, detail="Invalid internal API key")

    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    return Tenant(workspace_id=x_workspace_id or DEFAULT_WORKSPACE_ID, user_id=x_user_id)

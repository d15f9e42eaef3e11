"""
FastAPI dependencies shared by the API routes.

Authentication itself happens upstream: the auth gateway verifies the
session and forwards the user id in the X-User-Id header.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..database.models import UserDB
from ..database.repositories import UserRepository, get_user_repository
from ..utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    users: UserRepository = Depends(get_user_repository),
) -> UserDB:
    """Load the calling user; 401 when the header is missing or unknown."""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Not authorized")

    user = await users.get_by_id(int(x_user_id.strip()))
    if user is None:
        logger.info(f"Rejected request for unknown user id {x_user_id}")
        raise HTTPException(status_code=401, detail="Not authorized")
    return user


def get_now() -> datetime:
    """The current instant, injected so handlers never read the clock directly."""
    return utc_now()

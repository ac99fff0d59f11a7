from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from core.security import bearer_scheme, get_user_id_from_token
from core.exceptions import Unauthorized
import logging

logger = logging.getLogger(__name__)

async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Resolve the caller from the bearer access token (signature + expiry only, no store lookup)"""
    if credentials is None or (credentials.scheme or "").lower() != "bearer" or not credentials.credentials:
        raise Unauthorized()
    user_id = get_user_id_from_token(credentials.credentials)
    if not user_id:
        logger.warning("Rejected bearer access token")
        raise Unauthorized()
    return user_id

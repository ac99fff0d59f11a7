"""Access and refresh token lifecycle.

Access tokens are stateless JWTs. Refresh tokens are random secrets whose
SHA-256 hash is stored in ``refresh_tokens``; a record is live while it is
not revoked and not past ``expires_at``. Expiry is detected when the token is
used and recorded by flipping ``revoked`` to true. Revocation is never undone.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from core.config import settings
from core.security import create_access_token, generate_refresh_secret, hash_refresh_token
from services.user_service import require_mongo

logger = logging.getLogger(__name__)


def issue_access_token(user_id: str) -> str:
    return create_access_token(str(user_id))


async def issue_refresh_token(user_id: str) -> str:
    """Persist a new refresh token and return the raw secret.

    The raw value is only ever available here; the store keeps its hash.
    """
    mongo = require_mongo()
    raw_token = generate_refresh_secret()
    now = datetime.utcnow()
    await mongo.refresh_tokens.insert_one({
        "user_id": str(user_id),
        "token": hash_refresh_token(raw_token),
        "created_at": now,
        "expires_at": now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        "revoked": False,
        "revoked_at": None,
    })
    return raw_token


async def issue_auth_tokens(user_id: str) -> dict:
    return {
        "access_token": issue_access_token(user_id),
        "refresh_token": await issue_refresh_token(user_id),
    }


async def verify_refresh_token(raw_token: str) -> Optional[dict]:
    """Return the live record for ``raw_token`` or None.

    A matching record past its expiry is revoked on the spot.
    """
    if not raw_token:
        return None
    mongo = require_mongo()
    record = await mongo.refresh_tokens.find_one({"token": hash_refresh_token(raw_token), "revoked": False})
    if not record:
        return None
    if record["expires_at"] < datetime.utcnow():
        await mongo.refresh_tokens.update_one(
            {"_id": record["_id"]},
            {"$set": {"revoked": True, "revoked_at": datetime.utcnow()}},
        )
        logger.info(f"Refresh token {record['_id']} expired; revoked")
        return None
    return record


async def revoke_refresh_token(raw_token: str) -> bool:
    """Revoke the record matching ``raw_token``; True if one was live"""
    if not raw_token:
        return False
    mongo = require_mongo()
    result = await mongo.refresh_tokens.update_one(
        {"token": hash_refresh_token(raw_token), "revoked": False},
        {"$set": {"revoked": True, "revoked_at": datetime.utcnow()}},
    )
    return result.modified_count > 0


async def revoke_user_refresh_tokens(user_id: str) -> int:
    mongo = require_mongo()
    result = await mongo.refresh_tokens.update_many(
        {"user_id": str(user_id), "revoked": False},
        {"$set": {"revoked": True, "revoked_at": datetime.utcnow()}},
    )
    logger.info(f"Revoked {result.modified_count} refresh tokens for user {user_id}")
    return result.modified_count


async def rotate_refresh_token(old_raw_token: str, user_id: str) -> Optional[str]:
    """Swap a live ``old_raw_token`` for a new one.

    The old record is revoked with a conditional update first; only the
    request that wins that update gets a replacement, so concurrent refreshes
    of one token cannot both mint. Returns None when the old token was no
    longer live.
    """
    if not old_raw_token:
        return None
    mongo = require_mongo()
    now = datetime.utcnow()
    result = await mongo.refresh_tokens.update_one(
        {"token": hash_refresh_token(old_raw_token), "revoked": False, "expires_at": {"$gt": now}},
        {"$set": {"revoked": True, "revoked_at": now}},
    )
    if result.modified_count != 1:
        logger.warning("Refresh token was no longer live at rotation; not reissued")
        return None
    return await issue_refresh_token(user_id)

import logging
import asyncio
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import certifi
from core.config import settings

logger = logging.getLogger(__name__)

_mongo_client: Optional[AsyncIOMotorClient] = None
_mongo_db: Optional[AsyncIOMotorDatabase] = None

def get_mongo_db() -> Optional[AsyncIOMotorDatabase]:
    global _mongo_client, _mongo_db
    if _mongo_db is not None:
        return _mongo_db
    if not settings.MONGO_URI:
        logger.warning("MONGO_URI is not set")
        return None
    # Use secure defaults suitable for MongoDB Atlas and TLS endpoints
    client_kwargs = {
        "serverSelectionTimeoutMS": 30000,
        "connectTimeoutMS": 20000,
        "socketTimeoutMS": 20000,
    }
    # Atlas / SRV endpoints get the certifi CA bundle to avoid local OpenSSL issues
    if "mongodb.net" in settings.MONGO_URI or settings.MONGO_URI.startswith("mongodb+srv://"):
        client_kwargs.update({
            "tls": True,
            "tlsCAFile": certifi.where(),
            "retryWrites": True,
        })
    if settings.MONGO_URI.startswith("mongodb+srv://"):
        client_kwargs["directConnection"] = False
    _mongo_client = AsyncIOMotorClient(settings.MONGO_URI, **client_kwargs)
    _mongo_db = _mongo_client[settings.MONGO_DB]
    return _mongo_db

def close_mongo_client() -> None:
    global _mongo_client, _mongo_db
    if _mongo_client is not None:
        _mongo_client.close()
    _mongo_client = None
    _mongo_db = None

async def init_mongo_indexes():
    db = get_mongo_db()
    if db is None:
        return
    refresh_ttl_seconds = max(int(settings.REFRESH_TOKEN_TTL_GRACE_DAYS), 0) * 86400
    # Retry ping and index creation to allow primary election / networking delays
    for attempt in range(1, 6):
        try:
            await db.command({"ping": 1})
            # Users
            await db.users.create_index("email", unique=True, name="u_email")
            # OTP challenges; TTL only cleans up, expiry is checked on verify
            await db.otps.create_index("user_id", name="i_otp_user")
            await db.otps.create_index("expires_at", expireAfterSeconds=0, name="ttl_otp_expires")
            # Refresh tokens
            await db.refresh_tokens.create_index("token", unique=True, name="u_token")
            await db.refresh_tokens.create_index("user_id", name="i_rt_user")
            await db.refresh_tokens.create_index(
                "expires_at", expireAfterSeconds=refresh_ttl_seconds, name="ttl_rt_expires"
            )
            return
        except Exception as e:
            wait_s = min(2 ** attempt, 15)
            logger.warning(f"Mongo not ready (attempt {attempt}): {e}; retrying in {wait_s}s")
            await asyncio.sleep(wait_s)
    logger.error("Mongo index initialization failed after retries")

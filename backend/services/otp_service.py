from core.config import settings
from core.exceptions import (
    ValidationError,
    NotFound,
    NoActiveChallenge,
    OtpExpired,
    CodeMismatch,
    RateLimited,
    DeliveryFailure,
    PersistenceFailure,
)
from core.security import generate_otp, otp_matches
from services.user_service import (
    validate_email_address,
    normalize_email,
    require_mongo,
    get_or_create_user,
    sanitize_user,
    is_profile_incomplete,
)
from services.token_service import issue_auth_tokens
from utils.email import send_otp_email
from utils.timing import timeit
from fastapi import HTTPException
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)

async def _clear_otp_link(mongo, user_id) -> None:
    await mongo.users.update_one(
        {"_id": user_id},
        {"$set": {"otp_ref": None, "updated_at": datetime.utcnow()}},
    )

@timeit("request_otp")
async def request_otp(email: str):
    """Issue a new OTP challenge for ``email`` and mail it.

    First contact provisions the user. A new challenge replaces the previous
    one unless that one is younger than OTP_RESEND_MIN_SECONDS. A challenge
    whose mail could not be sent stays stored, so the cool-down still applies.
    """
    email = validate_email_address(email)
    try:
        mongo = require_mongo()
        user = await get_or_create_user(email)
        now = datetime.utcnow()

        if user.get("otp_ref"):
            existing = await mongo.otps.find_one({"_id": user["otp_ref"]})
            if existing:
                elapsed = (now - existing["created_at"]).total_seconds()
                if elapsed < settings.OTP_RESEND_MIN_SECONDS:
                    raise RateLimited(settings.OTP_RESEND_MIN_SECONDS - elapsed)

        # at most one challenge per user
        await mongo.otps.delete_many({"user_id": user["_id"]})

        otp_code = generate_otp()
        result = await mongo.otps.insert_one({
            "user_id": user["_id"],
            "otp": otp_code,
            "attempts": 0,
            "created_at": now,
            "expires_at": now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        })
        # a pending challenge means the address must be re-verified
        await mongo.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"otp_ref": result.inserted_id, "is_email_verified": False, "updated_at": now}},
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error requesting OTP: {e}")
        raise PersistenceFailure("Failed to send OTP")

    sent = send_otp_email(email, otp_code)
    if not sent:
        raise DeliveryFailure()
    logger.info(f"OTP issued for user {user['_id']}")
    return {"message": "OTP sent successfully"}

@timeit("verify_otp")
async def verify_otp(email: str, otp_code: str):
    """Check ``otp_code`` against the user's active challenge.

    Returns the token pair, the sanitized user and whether the profile still
    needs setup. The challenge is consumed only on success, on expiry, or
    when OTP_MAX_ATTEMPTS mismatches have been recorded.
    """
    if not email or not otp_code:
        raise ValidationError("Email and OTP are required")
    email = normalize_email(email)
    otp_code = str(otp_code).strip()
    try:
        mongo = require_mongo()
        user = await mongo.users.find_one({"email": email})
        if not user:
            raise NotFound()

        otp_ref = user.get("otp_ref")
        if not otp_ref:
            raise NoActiveChallenge()
        challenge = await mongo.otps.find_one({"_id": otp_ref})
        if not challenge:
            # removed by the TTL index
            await _clear_otp_link(mongo, user["_id"])
            raise NoActiveChallenge()

        if challenge["expires_at"] < datetime.utcnow():
            await mongo.otps.delete_one({"_id": challenge["_id"]})
            await _clear_otp_link(mongo, user["_id"])
            raise OtpExpired()

        if not otp_matches(challenge["otp"], otp_code):
            attempts = int(challenge.get("attempts", 0)) + 1
            max_attempts = settings.OTP_MAX_ATTEMPTS
            if max_attempts and attempts >= max_attempts:
                await mongo.otps.delete_one({"_id": challenge["_id"]})
                await _clear_otp_link(mongo, user["_id"])
                logger.warning(f"OTP attempt limit reached for user {user['_id']}")
                raise CodeMismatch("Too many invalid attempts; please request a new OTP")
            await mongo.otps.update_one({"_id": challenge["_id"]}, {"$inc": {"attempts": 1}})
            raise CodeMismatch()

        consumed = await mongo.otps.delete_one({"_id": challenge["_id"]})
        if consumed.deleted_count != 1:
            # a concurrent submission of the same code already used it
            raise NoActiveChallenge()
        updates = {"otp_ref": None, "is_email_verified": True, "updated_at": datetime.utcnow()}
        await mongo.users.update_one({"_id": user["_id"]}, {"$set": updates})
        user.update(updates)

        tokens = await issue_auth_tokens(str(user["_id"]))
        logger.info(f"OTP verified for user {user['_id']}")
        return {
            "access_token": tokens["access_token"],
            "refresh_token": tokens["refresh_token"],
            "user": sanitize_user(user),
            "is_new_profile": is_profile_incomplete(user),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error verifying OTP: {e}")
        raise PersistenceFailure("Failed to verify OTP")

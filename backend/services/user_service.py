from schemas.user_schema import EmailAddress, ProfileUpdate, UserPublic
from core.config import settings
from core.exceptions import ValidationError, NotFound, PersistenceFailure
from db.mongodb import get_mongo_db
from fastapi import HTTPException
from datetime import datetime
from typing import Optional
from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError
import pydantic
import logging
from utils.timing import timeit

logger = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    """Emails are matched case-insensitively and without surrounding whitespace"""
    return (email or "").strip().lower()

def validate_email_address(email: Optional[str]) -> str:
    """Return the normalized email or raise ValidationError (400)"""
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required")
    try:
        EmailAddress(email=email.strip())
    except pydantic.ValidationError:
        raise ValidationError("A valid email is required")
    return normalize_email(email)

def require_mongo():
    mongo = get_mongo_db()
    if mongo is None:
        logger.error("Mongo not available")
        raise PersistenceFailure()
    return mongo

def _iso(value) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value

def sanitize_user(user_doc: Optional[dict]) -> Optional[dict]:
    """Client-facing projection of a user document; never includes otp_ref"""
    if not user_doc:
        return None
    user = UserPublic(
        id=str(user_doc["_id"]),
        full_name=user_doc.get("full_name") or "",
        email=user_doc.get("email", ""),
        college=user_doc.get("college") or "",
        branch=user_doc.get("branch"),
        year=user_doc.get("year"),
        roll_number=user_doc.get("roll_number"),
        avatar=user_doc.get("avatar"),
        role=user_doc.get("role", "user"),
        is_email_verified=bool(user_doc.get("is_email_verified", False)),
        created_at=_iso(user_doc.get("created_at")),
        updated_at=_iso(user_doc.get("updated_at")),
    )
    return user.model_dump(by_alias=True)

def is_profile_incomplete(user_doc: dict) -> bool:
    """True while name or college still hold the placeholders set on first contact"""
    full_name = user_doc.get("full_name")
    college = user_doc.get("college")
    return (
        not full_name
        or full_name == settings.DEFAULT_FULL_NAME
        or not college
        or college == settings.DEFAULT_COLLEGE
    )

def new_user_document(email: str) -> dict:
    now = datetime.utcnow()
    return {
        "email": email,
        "full_name": settings.DEFAULT_FULL_NAME,
        "college": settings.DEFAULT_COLLEGE,
        "role": "user",
        "is_email_verified": False,
        "otp_ref": None,
        "created_at": now,
        "updated_at": now,
    }

async def get_or_create_user(email: str) -> dict:
    """Find a user by normalized email, provisioning one on first contact"""
    mongo = require_mongo()
    user = await mongo.users.find_one({"email": email})
    if user:
        return user
    doc = new_user_document(email)
    try:
        result = await mongo.users.insert_one(doc)
    except DuplicateKeyError:
        # Another request created the same email first
        user = await mongo.users.find_one({"email": email})
        if user:
            return user
        raise
    doc["_id"] = result.inserted_id
    logger.info(f"Created user {doc['_id']} for first OTP request")
    return doc

async def find_user_by_id(user_id: str) -> Optional[dict]:
    mongo = require_mongo()
    try:
        oid = ObjectId(user_id)
    except (InvalidId, TypeError):
        return None
    return await mongo.users.find_one({"_id": oid})

@timeit("get_user_profile")
async def get_user_profile(user_id: str):
    """Get user profile"""
    try:
        user = await find_user_by_id(user_id)
        if not user:
            raise NotFound()
        return {"user": sanitize_user(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user profile: {e}")
        raise PersistenceFailure("Failed to fetch profile")

@timeit("update_user_profile")
async def update_user_profile(user_id: str, profile: ProfileUpdate):
    """Complete or update the profile; requires full name and college"""
    try:
        full_name = (profile.full_name or "").strip()
        college = (profile.college or "").strip()
        if not full_name or not college:
            raise ValidationError("fullName and college are required")

        user = await find_user_by_id(user_id)
        if not user:
            raise NotFound()

        updates = {
            "full_name": full_name,
            "college": college,
            # completing setup counts as verification
            "is_email_verified": True,
            "updated_at": datetime.utcnow(),
        }
        if profile.branch:
            updates["branch"] = profile.branch
        if profile.year:
            updates["year"] = profile.year
        if profile.roll_number:
            updates["roll_number"] = profile.roll_number
        if profile.avatar:
            updates["avatar"] = profile.avatar

        mongo = require_mongo()
        await mongo.users.update_one({"_id": user["_id"]}, {"$set": updates})
        user.update(updates)
        return {"message": "Profile saved", "user": sanitize_user(user)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating user profile: {e}")
        raise PersistenceFailure("Failed to save profile")

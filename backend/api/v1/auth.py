from typing import Optional
from fastapi import APIRouter, Depends, Request
from api.dependencies import get_current_user_id
from core.config import settings
from core.exceptions import Unauthorized
from services.otp_service import request_otp, verify_otp
from services.token_service import (
    issue_access_token,
    verify_refresh_token,
    rotate_refresh_token,
    revoke_refresh_token,
    revoke_user_refresh_tokens,
)
from utils.responses import no_store_json, set_refresh_cookie, clear_refresh_cookie
from utils.timing import timeit

router = APIRouter()

async def _json_object(request: Request) -> dict:
    """Request body as a dict; a missing, malformed or non-object body reads as empty"""
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}

def _presented_refresh_token(request: Request, payload: dict) -> Optional[str]:
    """Cookie first, then ``refreshToken`` in the body"""
    token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE_NAME)
    if not token:
        token = payload.get("refreshToken")
    if not isinstance(token, str):
        return None
    return token.strip() or None

@router.post("/send-otp")
@timeit("send_otp")
async def send_otp(request: Request):
    payload = await _json_object(request)
    return no_store_json(await request_otp(payload.get("email")))

@router.post("/verify-otp")
@timeit("verify_otp")
async def verify_otp_endpoint(request: Request):
    payload = await _json_object(request)
    email = payload.get("email")
    otp = payload.get("otp")
    result = await verify_otp(
        email.strip() if isinstance(email, str) else None,
        str(otp).strip() if isinstance(otp, (str, int)) and not isinstance(otp, bool) else None,
    )
    response = no_store_json({
        "message": "OTP verified successfully",
        "accessToken": result["access_token"],
        "user": result["user"],
        "redirectToProfileSetup": result["is_new_profile"],
    })
    return set_refresh_cookie(response, result["refresh_token"])

@router.post("/refresh-token")
@timeit("refresh_token")
async def refresh_token(request: Request):
    token = _presented_refresh_token(request, await _json_object(request))
    if not token:
        raise Unauthorized()
    record = await verify_refresh_token(token)
    if not record:
        raise Unauthorized()

    user_id = record["user_id"]
    if not settings.REFRESH_TOKEN_ROTATION:
        return no_store_json({"accessToken": issue_access_token(user_id)})

    # another request may have rotated the same token since it was verified
    new_token = await rotate_refresh_token(token, user_id)
    if not new_token:
        raise Unauthorized()
    body = {"accessToken": issue_access_token(user_id), "refreshToken": new_token}
    return set_refresh_cookie(no_store_json(body), new_token)

@router.post("/logout")
@timeit("logout")
async def logout(request: Request):
    token = _presented_refresh_token(request, await _json_object(request))
    if token:
        await revoke_refresh_token(token)
    return clear_refresh_cookie(no_store_json({"message": "Logged out successfully"}))

@router.post("/logout-all")
@timeit("logout_all")
async def logout_all(user_id: str = Depends(get_current_user_id)):
    revoked = await revoke_user_refresh_tokens(user_id)
    response = no_store_json({"message": "Logged out from all sessions", "revoked": revoked})
    return clear_refresh_cookie(response)

from fastapi.responses import JSONResponse
from core.config import settings

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)

def set_refresh_cookie(response: JSONResponse, refresh_token: str) -> JSONResponse:
    """Attach the refresh token as an httpOnly, same-site cookie living as long as the token"""
    response.set_cookie(
        key=settings.REFRESH_TOKEN_COOKIE_NAME,
        value=refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response

def clear_refresh_cookie(response: JSONResponse) -> JSONResponse:
    response.delete_cookie(
        key=settings.REFRESH_TOKEN_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response

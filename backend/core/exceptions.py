"""Error taxonomy for the auth flow.

Every error is an ``HTTPException`` so services can raise it directly and
route handlers let FastAPI render it as ``{"detail": ...}``.
"""
import math
from typing import Optional

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Missing or malformed input"""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NoActiveChallenge(HTTPException):
    def __init__(self, detail: str = "No OTP found; request one first"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class OtpExpired(HTTPException):
    def __init__(self, detail: str = "OTP expired; please request a new one"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class CodeMismatch(HTTPException):
    def __init__(self, detail: str = "Invalid OTP"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class Unauthorized(HTTPException):
    """Missing, malformed, forged, revoked or expired credential.

    The message is the same for every cause.
    """

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFound(HTTPException):
    def __init__(self, detail: str = "User not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class RateLimited(HTTPException):
    def __init__(self, retry_after: float):
        self.retry_after = max(int(math.ceil(retry_after)), 1)
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Please wait {self.retry_after}s before requesting another OTP.",
            headers={"Retry-After": str(self.retry_after)},
        )


class DeliveryFailure(HTTPException):
    def __init__(self, detail: str = "Failed to send OTP"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class PersistenceFailure(HTTPException):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail or "Internal server error",
        )

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Union

class EmailAddress(BaseModel):
    email: EmailStr

class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    full_name: Optional[str] = Field(default=None, alias="fullName")
    college: Optional[str] = None
    branch: Optional[str] = None
    year: Optional[Union[int, str]] = None
    roll_number: Optional[str] = Field(default=None, alias="rollNumber")
    avatar: Optional[str] = None

class UserPublic(BaseModel):
    """Sanitized user projection returned to clients (no OTP link)"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    full_name: str = Field(alias="fullName")
    email: str
    college: str
    branch: Optional[str] = None
    year: Optional[Union[int, str]] = None
    roll_number: Optional[str] = Field(default=None, alias="rollNumber")
    avatar: Optional[str] = None
    role: str = "user"
    is_email_verified: bool = Field(default=False, alias="isEmailVerified")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

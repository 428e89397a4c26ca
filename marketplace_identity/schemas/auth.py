from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class APIModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(APIModel):
    full_name: str = Field(alias="fullName")
    email: str
    phone_number: str = Field(alias="phoneNumber")
    password: str = Field(json_schema_extra={"format": "password"})
    role: Optional[str] = None


class EmailRequest(APIModel):
    email: str


class VerifyOtpRequest(APIModel):
    email: str
    otp: str


class LoginRequest(APIModel):
    identifier: str
    password: str


class ResetPasswordRequest(APIModel):
    token: str
    password: str
    confirm_password: str = Field(alias="confirmPassword")

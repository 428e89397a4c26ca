from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from marketplace_identity.core.config import Settings
from marketplace_identity.core.gateway import require_principal
from marketplace_identity.domain.accounts import Principal
from marketplace_identity.schemas.auth import (
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from marketplace_identity.services import session_service
from marketplace_identity.services.auth_service import AuthService
from marketplace_identity.services.registration_service import OtpResent, RegistrationService

router = APIRouter(prefix="/auth", tags=["auth"])

# Endpoints are plain ``def`` on purpose: FastAPI runs them in its thread
# pool, which keeps argon2 hashing off the event loop.


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _registration(request: Request) -> RegistrationService:
    return request.app.state.registration_service


def _auth(request: Request) -> AuthService:
    return request.app.state.auth_service


def _otp_message(sent: bool, delivered: str) -> str:
    if sent:
        return delivered
    return "We could not deliver the verification code. Request a new one from /auth/otp."


@router.post("/signup")
def signup(payload: SignupRequest, request: Request, response: Response):
    outcome = _registration(request).signup(
        payload.full_name,
        payload.email,
        payload.phone_number,
        payload.password,
        payload.role,
    )
    if isinstance(outcome, OtpResent):
        return {
            "ok": True,
            "status": "OtpResent",
            "message": _otp_message(outcome.otp_sent, "Account exists but is not verified. New OTP sent to email."),
            "accountId": outcome.account.id,
            "otpSent": outcome.otp_sent,
        }
    session_service.set_access_cookie(response, outcome.access_token, _settings(request))
    response.status_code = 201
    return {
        "ok": True,
        "status": "Created",
        "message": _otp_message(outcome.otp_sent, "Account created. OTP sent to email."),
        "accountId": outcome.account.id,
        "otpSent": outcome.otp_sent,
    }


@router.post("/otp")
def resend_otp(payload: EmailRequest, request: Request):
    outcome = _registration(request).resend_otp(payload.email)
    return {
        "ok": True,
        "message": _otp_message(outcome.otp_sent, "Verification code sent to your email"),
        "otpSent": outcome.otp_sent,
    }


@router.post("/otp/verify")
def verify_otp(payload: VerifyOtpRequest, request: Request, response: Response):
    session = _registration(request).verify_otp(payload.email, payload.otp)
    session_service.set_auth_cookies(response, session.access_token, session.refresh_token, _settings(request))
    return {"ok": True, "message": "OTP verified and logged in", "user": session.account.public_view()}


@router.post("/login")
def login(payload: LoginRequest, request: Request, response: Response):
    outcome = _auth(request).login(payload.identifier, payload.password)
    session_service.set_auth_cookies(response, outcome.access_token, outcome.refresh_token, _settings(request))
    return {"ok": True, "user": outcome.account.public_view()}


@router.post("/refresh")
def refresh(request: Request, response: Response):
    session = _auth(request).refresh(session_service.refresh_token_from_request(request))
    session_service.set_auth_cookies(response, session.access_token, session.refresh_token, _settings(request))
    return {"ok": True, "accessToken": session.access_token}


@router.post("/logout")
def logout(request: Request, response: Response):
    # issued tokens stay valid until they expire; only the browser copy goes away
    session_service.clear_auth_cookies(response, _settings(request))
    return {"ok": True, "message": "Logged out"}


@router.get("/me")
def me(request: Request, principal: Principal = Depends(require_principal)):
    account = _auth(request).current_account(principal)
    return {"ok": True, "user": account.public_view()}


@router.post("/password/forgot")
def forgot_password(payload: EmailRequest, request: Request):
    _auth(request).request_password_reset(payload.email)
    return {"ok": True, "message": "If the email is registered and verified, a reset link is on its way."}


@router.post("/password/reset")
def reset_password(payload: ResetPasswordRequest, request: Request):
    _auth(request).reset_password(payload.token, payload.password, payload.confirm_password)
    return {"ok": True, "message": "Password reset successfully. You can now log in."}

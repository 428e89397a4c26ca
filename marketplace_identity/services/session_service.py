"""Cookie helpers for the access/refresh token pair."""
from __future__ import annotations

from fastapi import Request, Response

from marketplace_identity.core.config import Settings

ACCESS_COOKIE_NAME = "access_token"
REFRESH_COOKIE_NAME = "refresh_token"


def _set_cookie(response: Response, name: str, value: str, max_age: int, settings: Settings) -> None:
    response.set_cookie(
        name,
        value,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        max_age=max_age,
        path="/",
    )


def set_access_cookie(response: Response, token: str, settings: Settings) -> None:
    _set_cookie(response, ACCESS_COOKIE_NAME, token, settings.access_token_ttl_seconds, settings)


def set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    _set_cookie(response, REFRESH_COOKIE_NAME, token, settings.refresh_token_ttl_seconds, settings)


def set_auth_cookies(response: Response, access: str, refresh: str, settings: Settings) -> None:
    set_access_cookie(response, access, settings)
    set_refresh_cookie(response, refresh, settings)


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE_NAME, REFRESH_COOKIE_NAME):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite=settings.cookie_samesite,
        )


def access_token_from_request(request: Request) -> str | None:
    """Bearer header first, then the access cookie."""
    header = request.headers.get("authorization") or ""
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(ACCESS_COOKIE_NAME) or None


def refresh_token_from_request(request: Request) -> str | None:
    return request.cookies.get(REFRESH_COOKIE_NAME) or None

from __future__ import annotations

import dataclasses
import re

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from marketplace_identity.app import create_app
from marketplace_identity.core.gateway import require_role
from marketplace_identity.db import create_all, get_engine
from marketplace_identity.domain.accounts import Principal, Role
from marketplace_identity.repositories.sql_repository import SQLCredentialStore
from marketplace_identity.services.token_service import TokenService

JANE = {"fullName": "Jane", "email": "jane@x.com", "phoneNumber": "08011111111", "password": "Secret1A"}


@pytest.fixture()
def app(db_env, notifier, hasher):
    return create_app(db_env, notifier=notifier, hasher=hasher)


@pytest.fixture()
def client(app):
    return TestClient(app)


def _set_cookies(resp) -> dict[str, str]:
    """Cookie name -> raw Set-Cookie header for one response."""
    return {header.split("=", 1)[0]: header for header in resp.headers.get_list("set-cookie")}


def _cookie_value(header: str) -> str:
    return header.split(";", 1)[0].split("=", 1)[1]


def _call_me(app, cookies: dict[str, str] | None = None, bearer: str | None = None):
    headers = {}
    if cookies:
        headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())
    if bearer:
        headers["Authorization"] = f"Bearer {bearer}"
    return TestClient(app).get("/auth/me", headers=headers)


def _pending_code(app, email: str) -> str:
    store = app.state.auth_service.store
    account = store.find_account_by_email(email)
    return store.find_otp_by_owner(account.id).code


@pytest.fixture()
def session_tokens(app, client):
    """Signed-up and verified Jane; returns her (access, refresh) pair."""
    client.post("/auth/signup", json=JANE)
    resp = client.post("/auth/otp/verify", json={"email": JANE["email"], "otp": _pending_code(app, JANE["email"])})
    cookies = _set_cookies(resp)
    return _cookie_value(cookies["access_token"]), _cookie_value(cookies["refresh_token"])


def _expired_access(app, account_id: str) -> str:
    settings = app.state.settings
    expired = TokenService(dataclasses.replace(settings, access_token_ttl_seconds=-60))
    return expired.sign_access(account_id, "customer")


def _account_id(app, email: str = JANE["email"]) -> str:
    return app.state.auth_service.store.find_account_by_email(email).id


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_signup_verify_login_scenario(app, client, notifier):
    resp = client.post("/auth/signup", json=JANE)
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "Created"
    assert body["otpSent"] is True
    assert "access_token" in _set_cookies(resp)
    code = _pending_code(app, JANE["email"])
    assert re.fullmatch(r"\d{6}", code)
    assert len(notifier.sent) == 1
    assert code in notifier.sent[0]["text"]

    wrong = "000000" if code != "000000" else "111111"
    resp = client.post("/auth/otp/verify", json={"email": JANE["email"], "otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["code"] == "mismatch"

    resp = client.post("/auth/otp/verify", json={"email": JANE["email"], "otp": code})
    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == JANE["email"]
    assert {"access_token", "refresh_token"} <= set(_set_cookies(resp))

    resp = client.post("/auth/login", json={"identifier": JANE["phoneNumber"], "password": JANE["password"]})
    assert resp.status_code == 200
    assert resp.json()["user"]["fullName"] == "Jane"
    assert "passwordHash" not in resp.json()["user"]


def test_repeat_signup_before_verification_resends(client, notifier):
    client.post("/auth/signup", json=JANE)

    resp = client.post("/auth/signup", json=JANE)

    assert resp.status_code == 200
    assert resp.json()["status"] == "OtpResent"
    assert len(notifier.sent) == 2


def test_signup_after_verification_conflicts(client, session_tokens):
    resp = client.post("/auth/signup", json=JANE)
    assert resp.status_code == 409
    assert resp.json()["ok"] is False


def test_unverified_login_is_forbidden(client):
    client.post("/auth/signup", json={**JANE, "email": "tolu@x.com", "phoneNumber": "08022222222"})

    resp = client.post("/auth/login", json={"identifier": "tolu@x.com", "password": JANE["password"]})

    assert resp.status_code == 403


def test_wrong_password_is_unauthorized(client, session_tokens):
    resp = client.post("/auth/login", json={"identifier": JANE["email"], "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_admin_signup_rejected(client):
    resp = client.post("/auth/signup", json={**JANE, "role": "admin"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation"


def test_malformed_body_is_validation_error(client):
    resp = client.post("/auth/signup", json={"email": "jane@x.com"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "validation"
    assert "fullName" in body["details"]["fields"]


def test_notifier_failure_still_creates_account(app, client, notifier):
    notifier.result = False

    resp = client.post("/auth/signup", json=JANE)

    assert resp.status_code == 201
    assert resp.json()["otpSent"] is False
    assert re.fullmatch(r"\d{6}", _pending_code(app, JANE["email"]))


def test_resend_for_unknown_email_is_not_found(client):
    resp = client.post("/auth/otp", json={"email": "ghost@x.com"})
    assert resp.status_code == 404


# -------------------------------------- gateway --------------------------------------


def test_valid_access_cookie_passes_without_new_cookie(app, session_tokens):
    access, refresh = session_tokens

    resp = _call_me(app, {"access_token": access, "refresh_token": refresh})

    assert resp.status_code == 200
    assert resp.json()["user"]["email"] == JANE["email"]
    assert resp.headers.get_list("set-cookie") == []


def test_bearer_access_token_is_accepted(app, session_tokens):
    access, _ = session_tokens
    assert _call_me(app, bearer=access).status_code == 200


def test_expired_access_is_silently_refreshed(app, session_tokens):
    _, refresh = session_tokens
    stale = _expired_access(app, _account_id(app))

    resp = _call_me(app, {"access_token": stale, "refresh_token": refresh})

    assert resp.status_code == 200
    cookies = _set_cookies(resp)
    assert "access_token" in cookies
    assert "refresh_token" not in cookies
    fresh = _cookie_value(cookies["access_token"])
    assert fresh != stale
    assert _call_me(app, {"access_token": fresh}).status_code == 200


def test_missing_access_with_valid_refresh_is_refreshed(app, session_tokens):
    _, refresh = session_tokens

    resp = _call_me(app, {"refresh_token": refresh})

    assert resp.status_code == 200
    assert "access_token" in _set_cookies(resp)


@pytest.mark.parametrize("refresh", [None, "not-a-token"])
def test_expired_access_without_usable_refresh_is_rejected(app, session_tokens, refresh):
    cookies = {"access_token": _expired_access(app, _account_id(app))}
    if refresh:
        cookies["refresh_token"] = refresh

    resp = _call_me(app, cookies)

    assert resp.status_code == 401
    assert resp.headers.get_list("set-cookie") == []


def test_refresh_token_cannot_act_as_access_token(app, session_tokens):
    _, refresh = session_tokens
    resp = _call_me(app, bearer=refresh)
    assert resp.status_code == 401


def test_access_token_cannot_act_as_refresh_token(app, session_tokens):
    access, _ = session_tokens
    stale = _expired_access(app, _account_id(app))
    resp = _call_me(app, {"access_token": stale, "refresh_token": access})
    assert resp.status_code == 401


def test_no_credentials_is_rejected(app):
    assert _call_me(app).status_code == 401


# -------------------------------------- refresh / logout --------------------------------------


def test_refresh_endpoint_rotates_both_cookies(app, session_tokens):
    _, refresh = session_tokens

    resp = TestClient(app).post("/auth/refresh", headers={"Cookie": f"refresh_token={refresh}"})

    assert resp.status_code == 200
    assert resp.json()["accessToken"]
    assert {"access_token", "refresh_token"} <= set(_set_cookies(resp))


def test_refresh_endpoint_without_cookie(app):
    resp = TestClient(app).post("/auth/refresh")
    assert resp.status_code == 401


def test_logout_clears_both_cookies(client, session_tokens):
    resp = client.post("/auth/logout")

    assert resp.status_code == 200
    cookies = _set_cookies(resp)
    for name in ("access_token", "refresh_token"):
        assert "Max-Age=0" in cookies[name] or "max-age=0" in cookies[name].lower()


# -------------------------------------- password reset --------------------------------------


def test_password_reset_endpoints(client, notifier, session_tokens):
    resp = client.post("/auth/password/forgot", json={"email": JANE["email"]})
    assert resp.status_code == 200
    token = re.search(r"token=([0-9a-f]+)", notifier.sent[-1]["text"]).group(1)

    resp = client.post(
        "/auth/password/reset",
        json={"token": token, "password": "NewSecret9", "confirmPassword": "NewSecret9"},
    )
    assert resp.status_code == 200

    resp = client.post("/auth/login", json={"identifier": JANE["email"], "password": "NewSecret9"})
    assert resp.status_code == 200


def test_forgot_password_is_uniform_for_unknown_email(client, notifier):
    resp = client.post("/auth/password/forgot", json={"email": "ghost@x.com"})
    assert resp.status_code == 200
    assert notifier.sent == []


# -------------------------------------- role-scoped routes --------------------------------------


@pytest.fixture()
def customer_area(app):
    @app.get("/customer/area")
    def area(principal: Principal = Depends(require_role(Role.CUSTOMER))):
        return {"ok": True, "id": principal.id, "role": principal.role.value}

    return app


def _verified_vendor(app) -> str:
    registration = app.state.registration_service
    created = registration.signup("Victor Vendor", "victor@x.com", "08033333333", "Secret1A", "vendor")
    registration.verify_otp("victor@x.com", _pending_code(app, "victor@x.com"))
    return created.account.id


def _get_area(app, cookies=None, bearer=None):
    headers = {}
    if cookies:
        headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())
    if bearer:
        headers["Authorization"] = f"Bearer {bearer}"
    return TestClient(app).get("/customer/area", headers=headers)


def test_role_scoped_route_admits_matching_role(customer_area, session_tokens):
    access, _ = session_tokens

    resp = _get_area(customer_area, bearer=access)

    assert resp.status_code == 200
    assert resp.json()["role"] == "customer"


def test_role_scoped_route_rejects_other_roles(customer_area):
    vendor_access = TokenService(customer_area.state.settings).sign_access(_verified_vendor(customer_area), Role.VENDOR)

    resp = _get_area(customer_area, bearer=vendor_access)

    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_role_scoped_route_without_credentials_is_unauthorized(customer_area):
    assert _get_area(customer_area).status_code == 401


def test_role_is_enforced_after_silent_refresh(customer_area, session_tokens):
    _, refresh = session_tokens
    stale = _expired_access(customer_area, _account_id(customer_area))

    resp = _get_area(customer_area, {"access_token": stale, "refresh_token": refresh})
    assert resp.status_code == 200
    assert "access_token" in _set_cookies(resp)

    vendor_id = _verified_vendor(customer_area)
    vendor_refresh = TokenService(customer_area.state.settings).sign_refresh(vendor_id)
    resp = _get_area(customer_area, {"access_token": stale, "refresh_token": vendor_refresh})
    assert resp.status_code == 403


def test_require_role_needs_known_roles():
    with pytest.raises(ValueError):
        require_role()
    with pytest.raises(ValueError):
        require_role("superuser")


# -------------------------------------- injected settings --------------------------------------


def test_app_uses_database_from_injected_settings(db_env, notifier, hasher, tmp_path):
    other_url = f"sqlite:///{tmp_path / 'other.db'}"
    create_all(get_engine(other_url))
    app = create_app(dataclasses.replace(db_env, database_url=other_url), notifier=notifier, hasher=hasher)

    resp = TestClient(app).post("/auth/signup", json=JANE)

    assert resp.status_code == 201
    assert SQLCredentialStore(other_url).find_account_by_email(JANE["email"]) is not None
    assert SQLCredentialStore(db_env.database_url).find_account_by_email(JANE["email"]) is None

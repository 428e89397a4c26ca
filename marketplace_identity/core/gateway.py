"""
Per-request authorization with silent access-token refresh.

``AuthGateway.authenticate`` has one documented side effect: when the
access token is missing or no longer valid but the refresh cookie is, it
mints a new access token and overwrites the access cookie on the outgoing
response. It never touches cookies on success or on failure.
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Depends, Request, Response

from marketplace_identity.core.config import Settings
from marketplace_identity.core.errors import ForbiddenError, UnauthorizedError
from marketplace_identity.domain.accounts import Principal, Role
from marketplace_identity.repositories.base import CredentialStore
from marketplace_identity.services import session_service
from marketplace_identity.services.token_service import Claims, TokenService, TokenType

logger = logging.getLogger(__name__)


class AuthGateway:
    def __init__(self, tokens: TokenService, store: CredentialStore, settings: Settings):
        self.tokens = tokens
        self.store = store
        self.settings = settings

    def authenticate(self, request: Request, response: Response) -> Principal:
        token = session_service.access_token_from_request(request)
        claims = self.tokens.verify(token, TokenType.ACCESS)
        if isinstance(claims, Claims):
            principal = Principal(id=claims.sub, role=claims.role)
        else:
            principal = self._refresh(request, response)
        request.state.principal = principal
        return principal

    def _refresh(self, request: Request, response: Response) -> Principal:
        refresh = session_service.refresh_token_from_request(request)
        claims = self.tokens.verify(refresh, TokenType.REFRESH)
        if not isinstance(claims, Claims):
            raise UnauthorizedError("Unauthorized")
        account = self.store.find_account_by_id(claims.sub)
        if not account:
            raise UnauthorizedError("Unauthorized")
        access = self.tokens.sign_access(account.id, account.role)
        session_service.set_access_cookie(response, access, self.settings)
        logger.info("Silently refreshed access token for account %s", account.id)
        return Principal(id=account.id, role=account.role)


def require_principal(request: Request, response: Response) -> Principal:
    """FastAPI dependency guarding protected routes."""
    gateway: AuthGateway = request.app.state.gateway
    return gateway.authenticate(request, response)


def require_role(*roles: Role | str) -> Callable[..., Principal]:
    """
    Dependency factory for role-scoped routes, e.g.
    ``Depends(require_role(Role.VENDOR))``. Unauthenticated requests get 401
    from ``require_principal``; an authenticated principal outside ``roles``
    gets 403.
    """
    if not roles:
        raise ValueError("require_role needs at least one role")
    allowed = frozenset(Role(role) for role in roles)

    def dependency(principal: Principal = Depends(require_principal)) -> Principal:
        if principal.role not in allowed:
            needed = ", ".join(sorted(role.value for role in allowed))
            logger.info("Account %s (%s) denied; route needs %s", principal.id, principal.role.value, needed)
            raise ForbiddenError("You do not have access to this resource")
        return principal

    return dependency

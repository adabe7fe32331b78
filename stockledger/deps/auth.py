from __future__ import annotations

import hmac
from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.config import settings
from ..core.security import decode_token
from ..middlewares import principal_ctx_var
from ..models.user import ROLES

API_KEY_ROLE = "InventoryAdmin"

ALL_ROLES = ROLES
CATALOG_EDITORS = ("IT", "Accounts", "InventoryAdmin")
ADMINS = ("IT", "InventoryAdmin")


class Principal:
    """Who is calling: the actor string recorded on movements plus the role for gating."""

    def __init__(self, *, subject: str, role: str, scheme: str, name: str | None = None) -> None:
        self.subject = subject
        self.role = role
        self.scheme = scheme
        self.name = name

    @property
    def actor(self) -> str:
        return self.name or self.subject


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bind(request: Request, principal: Principal) -> Principal:
    principal_ctx_var.set(f"{principal.scheme}:{principal.subject}")
    request.state.principal = principal
    return principal


async def require_principal(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> Principal:
    api_key = settings.API_KEY
    provided_key = (x_api_key or "").strip()
    if api_key and provided_key and hmac.compare_digest(api_key, provided_key):
        return _bind(request, Principal(subject="api-key", role=API_KEY_ROLE, scheme="api_key"))

    if authorization:
        scheme, credentials = get_authorization_scheme_param(authorization)
        if scheme.lower() == "bearer" and credentials:
            try:
                payload = decode_token(credentials, verify_type="access")
            except ValueError as exc:
                _unauthorized(str(exc))
            request.state.token_payload = payload
            return _bind(request, Principal(subject=payload.sub, role=payload.role, scheme="jwt", name=payload.name))

    if provided_key:
        _unauthorized("Invalid API key")
    _unauthorized("Authorization required")


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Dependency factory: reject callers whose role is not in ``roles`` with 403."""

    allowed = frozenset(roles)

    async def dependency(principal: Principal = Depends(require_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {principal.role} is not allowed to perform this action",
            )
        return principal

    return dependency


__all__ = [
    "ADMINS",
    "ALL_ROLES",
    "API_KEY_ROLE",
    "CATALOG_EDITORS",
    "Principal",
    "require_principal",
    "require_roles",
]

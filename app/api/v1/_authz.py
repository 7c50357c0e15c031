"""Shared authorization and error-mapping helpers for API v1 route modules."""

from __future__ import annotations

from fastapi import HTTPException

from app.auth.rbac import require_scopes
from app.core.config import get_config
from app.core.dependencies import CurrentUser, get_current_user
from app.core.exceptions import (
    AlreadyResolvedError,
    AuthenticationError,
    AuthorizationError,
    InvalidInputError,
    InvalidTransitionError,
    LedgerServiceError,
    LockTimeoutError,
    NoEligibleEntriesError,
    NotFoundError,
    StaleStateError,
)

_DOMAIN_STATUS: tuple[tuple[type[LedgerServiceError], int], ...] = (
    (InvalidInputError, 422),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (StaleStateError, 409),
    (AlreadyResolvedError, 409),
    (NoEligibleEntriesError, 409),
    (LockTimeoutError, 503),
)


def _extract_bearer_token(authorization: str | None) -> str:
    if authorization is None or not authorization.strip():
        raise AuthenticationError("Authorization header is required.")
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Authorization header must use Bearer token.")
    return parts[1].strip()


def authorize(authorization: str | None, scopes: list[str]) -> CurrentUser:
    token = _extract_bearer_token(authorization)
    user = get_current_user(token=token, settings=get_config())
    require_scopes(user.role.value, scopes)
    return user


def map_auth_error(exc: Exception) -> tuple[int, str]:
    if isinstance(exc, AuthenticationError):
        return 401, str(exc)
    if isinstance(exc, AuthorizationError):
        return 403, str(exc)
    return 401, "Unauthorized."


def map_domain_error(exc: LedgerServiceError) -> tuple[int, str]:
    if isinstance(exc, (AuthenticationError, AuthorizationError)):
        return map_auth_error(exc)
    for error_cls, code in _DOMAIN_STATUS:
        if isinstance(exc, error_cls):
            return code, str(exc)
    return 500, "Internal billing error."


def domain_http_error(exc: LedgerServiceError) -> HTTPException:
    code, detail = map_domain_error(exc)
    headers = {"Retry-After": "1"} if isinstance(exc, LockTimeoutError) else None
    return HTTPException(status_code=code, detail=detail, headers=headers)


def scope_supplier(user: CurrentUser, requested: int | None) -> int:
    try:
        return user.scoped_supplier_id(requested)
    except AuthorizationError as exc:
        raise domain_http_error(exc) from exc

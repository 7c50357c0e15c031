"""Dependency providers for API handlers and background workers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.auth.jwt import decode_jwt
from app.core.config import Config, get_config
from app.core.enums import Role
from app.core.exceptions import AuthenticationError, AuthorizationError


@dataclass(frozen=True)
class CurrentUser:
    subject: str
    role: Role
    supplier_id: int | None
    claims: dict[str, Any]

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def scoped_supplier_id(self, requested: int | None = None) -> int:
        """Supplier the caller may read; suppliers are pinned to their own claim."""
        if self.is_admin:
            if requested is None:
                raise AuthorizationError("supplier_id is required for admin billing reads.")
            return requested
        if self.supplier_id is None:
            raise AuthorizationError("Token carries no supplier_id claim.")
        if requested is not None and requested != self.supplier_id:
            raise AuthorizationError("Suppliers may only read their own billing data.")
        return self.supplier_id


def get_settings() -> Config:
    """Return validated application configuration."""
    return get_config()


def get_current_user(token: str, settings: Config | None = None) -> CurrentUser:
    """Resolve the current principal from a verified bearer token."""
    cfg = settings or get_settings()
    claims = decode_jwt(token=token, secret=cfg.JWT_SECRET)

    try:
        role = Role(str(claims["role"]).lower())
        supplier_claim = claims.get("supplier_id")
        return CurrentUser(
            subject=str(claims["sub"]),
            role=role,
            supplier_id=int(supplier_claim) if supplier_claim is not None else None,
            claims=claims,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Invalid auth claims.") from exc

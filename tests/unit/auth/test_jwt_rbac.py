from __future__ import annotations

from datetime import timedelta

import pytest

from app.auth.jwt import create_access_token, decode_jwt, encode_jwt
from app.auth.rbac import BILLING_EXPORT, BILLING_READ, BILLING_WRITE, DISPUTES_WRITE, require_scopes
from app.core.config import get_config
from app.core.dependencies import get_current_user
from app.core.enums import Role
from app.core.exceptions import AuthenticationError, AuthorizationError


def test_jwt_roundtrip_contains_required_claims():
    token = create_access_token("supplier-7", "supplier", secret="test-secret", supplier_id=7)
    claims = decode_jwt(token, secret="test-secret")
    assert claims["sub"] == "supplier-7"
    assert claims["role"] == "supplier"
    assert claims["supplier_id"] == 7
    assert "exp" in claims
    assert "iat" in claims
    assert "jti" in claims


def test_jwt_rejects_bad_signature_and_expiry():
    token = create_access_token("admin-1", "admin", secret="test-secret")
    with pytest.raises(AuthenticationError, match="signature"):
        decode_jwt(token, secret="other-secret")

    expired = encode_jwt({"sub": "admin-1", "role": "admin"}, secret="test-secret", ttl=timedelta(minutes=-5))
    with pytest.raises(AuthenticationError, match="expired"):
        decode_jwt(expired, secret="test-secret")
    with pytest.raises(AuthenticationError):
        decode_jwt("not-a-token", secret="test-secret")


def test_jwt_rejects_unsigned_algorithm():
    token = create_access_token("admin-1", "admin", secret="test-secret")
    _, payload, signature = token.split(".")
    # base64url of {"alg":"none","typ":"JWT"}
    forged = f"eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0.{payload}.{signature}"
    with pytest.raises(AuthenticationError, match="algorithm"):
        decode_jwt(forged, secret="test-secret")


def test_rbac_blocks_missing_scope():
    require_scopes("supplier", [BILLING_READ, BILLING_EXPORT])
    require_scopes("admin", [BILLING_WRITE, DISPUTES_WRITE])
    with pytest.raises(AuthorizationError):
        require_scopes("supplier", [BILLING_WRITE])
    with pytest.raises(AuthorizationError):
        require_scopes("viewer", [BILLING_READ])


def test_current_user_pins_suppliers_to_their_own_id():
    secret = get_config().JWT_SECRET
    supplier = get_current_user(create_access_token("s-3", "supplier", secret, supplier_id=3))
    assert supplier.role == Role.SUPPLIER
    assert supplier.scoped_supplier_id() == 3
    assert supplier.scoped_supplier_id(3) == 3
    with pytest.raises(AuthorizationError):
        supplier.scoped_supplier_id(4)

    admin = get_current_user(create_access_token("a-1", "admin", secret))
    assert admin.is_admin
    assert admin.scoped_supplier_id(4) == 4
    with pytest.raises(AuthorizationError):
        admin.scoped_supplier_id()


def test_current_user_rejects_unknown_role():
    token = create_access_token("x", "buyer", get_config().JWT_SECRET)
    with pytest.raises(AuthenticationError, match="claims"):
        get_current_user(token)

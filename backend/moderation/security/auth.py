"""Authentication & authorization (token-based).

Design:
- Bearer JWT tokens (HS256) issued by the host platform.
- Role is embedded in token claims.
- Default deny. Endpoints must explicitly allow roles.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from dataclasses import dataclass
from typing import Any, Callable

from fastapi import Depends, Request

from engine.core.errors import AuthError, ForbiddenError
from moderation.security.roles import Role, is_role_allowed, is_staff


JWT_SECRET_ENV = "MOD_JWT_SECRET"


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated principal extracted from token claims."""

    sub: str
    role: Role
    token_fingerprint: str  # stable, non-sensitive identifier for rate limiting/audit logs

    @property
    def is_staff(self) -> bool:
        return is_staff(self.role)


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _get_jwt_secret() -> bytes:
    secret = os.environ.get(JWT_SECRET_ENV)
    if not secret:
        raise RuntimeError(f"Missing required env var {JWT_SECRET_ENV}.")
    return secret.encode("utf-8")


def _hmac_sha256(key: bytes, msg: bytes) -> bytes:
    return hmac.new(key, msg, hashlib.sha256).digest()


def decode_and_verify_jwt(token: str) -> dict[str, Any]:
    """Verify HS256 JWT signature and minimal standard claims.

    Required claims:
    - sub: subject identifier (the platform user id)
    - role: one of Role
    Optional:
    - exp: unix epoch seconds
    """
    try:
        header_b64, payload_b64, sig_b64 = token.split(".")
    except ValueError as e:
        raise AuthError("Invalid token format.") from e

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    expected_sig = _b64url_encode(_hmac_sha256(_get_jwt_secret(), signing_input))
    if not hmac.compare_digest(expected_sig, sig_b64):
        raise AuthError("Invalid token signature.")

    try:
        header = json.loads(_b64url_decode(header_b64))
        payload = json.loads(_b64url_decode(payload_b64))
    except (ValueError, UnicodeDecodeError) as e:
        raise AuthError("Invalid token encoding.") from e

    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise AuthError("Invalid token encoding.")
    if header.get("alg") != "HS256" or header.get("typ") != "JWT":
        raise AuthError("Unsupported token header.")

    exp = payload.get("exp")
    if exp is not None:
        try:
            exp_i = int(exp)
        except (TypeError, ValueError) as e:
            raise AuthError("Invalid exp claim.") from e
        if int(time.time()) >= exp_i:
            raise AuthError("Token expired.")

    if "sub" not in payload or "role" not in payload:
        raise AuthError("Missing required claims.")

    return payload


def token_fingerprint(token: str) -> str:
    """Non-reversible token fingerprint for rate limiting and audit logs."""
    raw = hashlib.sha256(token.encode("utf-8")).digest()
    return _b64url_encode(raw[:18])


def get_current_principal(request: Request) -> Principal:
    """Extract and validate bearer token, returning Principal."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise AuthError("Missing bearer token.")
    token = auth.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Missing bearer token.")

    claims = decode_and_verify_jwt(token)
    try:
        role = Role(str(claims["role"]))
    except ValueError as e:
        raise AuthError("Invalid role claim.") from e

    sub = str(claims["sub"]).strip()
    if not sub or len(sub) > 128:
        raise AuthError("Invalid sub claim.")

    principal = Principal(sub=sub, role=role, token_fingerprint=token_fingerprint(token))
    request.state.principal_fingerprint = principal.token_fingerprint
    return principal


def require_roles(*allowed_roles: Role) -> Callable[[Principal], Principal]:
    """FastAPI dependency factory enforcing explicit allow-list."""

    allowed = set(allowed_roles)

    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not is_role_allowed(principal.role, allowed):
            raise ForbiddenError("Access denied.")
        return principal

    return _dep


require_any_role = require_roles(Role.USER, Role.MODERATOR, Role.ADMIN)
require_staff = require_roles(Role.MODERATOR, Role.ADMIN)
require_admin = require_roles(Role.ADMIN)

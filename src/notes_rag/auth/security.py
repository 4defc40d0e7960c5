"""
JWT Verification

This module is responsible for:

1. Verifying bearer JWTs issued by the notes backend's auth service.
2. Producing a validated `OwnerContext` object for downstream routes.

Security Model
--------------
- Tokens are verified with a shared secret; this service never issues them.
- The `sub` claim is the owner id and the only authorization boundary.
- Verification happens before any data access, so a rejected request never
  reveals whether a note exists.
"""

from __future__ import annotations

import jwt
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from .models import OwnerContext


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

# auto_error=False so a missing header is reported as 401, not 403
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class JWTVerificationError(RuntimeError):
    """Raised internally when token verification cannot proceed."""


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode_token(token: str) -> dict:
    """
    Decode and validate a bearer JWT.

    Raises
    ------
    Various JWT-related exceptions, which the public wrapper handles.
    """
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        raise JWTVerificationError("Missing jwt_secret in configuration.")

    return jwt.decode(
        token,
        secret,
        algorithms=[settings.jwt_algo],
        audience=settings.jwt_audience,
        options={
            "require": ["sub", "aud", "iat", "exp"],
        },
    )


# ---------------------------------------------------------------------
# Public Authentication Dependency
# ---------------------------------------------------------------------

def verify_bearer_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> OwnerContext:
    """
    Verify the request's bearer JWT and construct an OwnerContext.

    Expected claims:
      - sub: owner id
      - aud: configured audience (default "authenticated")
      - iat / exp: issue and expiry timestamps
      - email, role: optional

    Returns
    -------
    OwnerContext

    Raises
    ------
    HTTPException(401) for missing, invalid or expired tokens.
    """
    if creds is None or not creds.credentials:
        raise _unauthorized("Authorization required: no session.")

    try:
        payload = _decode_token(creds.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired.")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid token audience.")
    except jwt.MissingRequiredClaimError as exc:
        raise _unauthorized(f"Token missing '{exc.claim}' claim.")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid or malformed token.")
    except JWTVerificationError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT verification configuration error.",
        )

    owner_id = payload.get("sub")
    if not owner_id or not isinstance(owner_id, str):
        raise _unauthorized("Token missing 'sub' claim.")

    email = payload.get("email")
    role = payload.get("role") or "authenticated"

    return OwnerContext(
        owner_id=owner_id,
        email=email if isinstance(email, str) else None,
        role=role if isinstance(role, str) else "authenticated",
    )

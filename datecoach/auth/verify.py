"""
verify.py
---------
Purpose:
    JWT verification using Supabase JWKS (ES256).

Notes:
    - Fetches JWKS from Supabase and caches keys.
    - The JWKS client is built on first use so the app starts without Supabase settings.
    - Provides `auth_dependency` for protected routes.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from datecoach.config import settings

SUPABASE_AUDIENCE = "authenticated"

_jwk_client: PyJWKClient | None = None
_security = HTTPBearer()


def _get_jwk_client() -> PyJWKClient:
    global _jwk_client
    if _jwk_client is None:
        jwks_url = settings.jwks_url()
        if not jwks_url:
            raise RuntimeError("SUPABASE_URL or SUPABASE_JWKS_URL not configured")
        _jwk_client = PyJWKClient(jwks_url)
    return _jwk_client


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _get_jwk_client().get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)

"""
verify.py
---------
Purpose:
    Supabase access-token verification (ES256 via the project JWKS).

Notes:
    - Signing keys are fetched from the Supabase JWKS endpoint and cached by PyJWKClient.
    - `auth_dependency` returns the decoded claims; `get_current_user` narrows them
      to the `CurrentUser` the services work with.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from aihub.config import settings
from aihub.models.domain.user_domain import CurrentUser

SUPABASE_AUDIENCE = "authenticated"

_jwk_client = PyJWKClient(settings.jwks_url())
_security = HTTPBearer()


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    return verify_jwt(credentials.credentials)


def get_current_user(claims: dict = Depends(auth_dependency)) -> CurrentUser:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(id=user_id, email=claims.get("email"))

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from vocabdrop.auth import SCOPE_ADMIN, SCOPE_JOBS, decode_service_token

# auto_error=False allows us to handle missing auth ourselves with 401 instead of 403
security = HTTPBearer(auto_error=False)


def _require_scope(credentials: HTTPAuthorizationCredentials | None, allowed: set[str]) -> dict:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_service_token(credentials.credentials)
    except JWTError:
        raise credentials_exception

    if payload.get("sub") is None or payload.get("scope") not in allowed:
        raise credentials_exception

    return payload


async def require_service_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate a token allowed to trigger pipeline runs."""
    return _require_scope(credentials, {SCOPE_JOBS, SCOPE_ADMIN})


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    """Validate a token allowed to manage subscriber settings."""
    return _require_scope(credentials, {SCOPE_ADMIN})

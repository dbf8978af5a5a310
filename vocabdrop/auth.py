from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt

from vocabdrop.config import settings

SCOPE_JOBS = "jobs"
SCOPE_ADMIN = "admin"


def create_service_token(
    subject: str,
    scope: str = SCOPE_JOBS,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed token for cron triggers and internal callers."""
    to_encode = {"sub": subject, "scope": scope}
    if expires_delta is not None:
        to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_service_token(token: str) -> dict:
    return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])

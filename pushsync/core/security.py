from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from pushsync.config import settings


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Issue a bearer token for the registry API. ``sub`` carries the user id."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT. Returns payload dict or None on failure."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

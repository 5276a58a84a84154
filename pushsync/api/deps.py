from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from pushsync.core.security import decode_access_token
from pushsync.database import get_db
from pushsync.models.user import User

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    payload = decode_access_token(credentials.credentials)
    user = None
    if payload is not None and str(payload.get("sub", "")).isdigit():
        user = db.query(User).filter(User.id == int(payload["sub"]), User.is_active == True).first()  # noqa: E712

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    return user

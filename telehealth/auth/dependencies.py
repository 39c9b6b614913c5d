from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import jwt

from telehealth.auth import jwt_handler
from telehealth.database import SessionLocal
from telehealth.models.user import User

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    # a token minted for an earlier role must not outlive a role change
    token_role = payload.get("role")
    if token_role is not None and token_role != user.role:
        raise HTTPException(status_code=401, detail="Token role does not match user")
    return user


def ensure_role(user: User, *roles: str, detail: str | None = None) -> None:
    if user.role not in roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail or "You do not have permission to perform this action.",
        )

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from woofadaar.core.database import get_db
from woofadaar.models.user import User
from woofadaar.repositories.user_repository import UserRepository
from woofadaar.services.token_service import TokenService


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Resolve the user from the bearer token in the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = auth_header[7:]
    if not token:
        raise HTTPException(status_code=401, detail="Token is required")

    try:
        user_id = TokenService.verify_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token") from None

    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only administrators through."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return user

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.models import User
from school_billing.auth.schemas import CurrentUser
from school_billing.auth.security import decode_access_token
from school_billing.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login-oauth")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        claims = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    try:
        user_id = int(claims.get("user_id") or claims.get("sub"))
    except (TypeError, ValueError):
        raise credentials_exception

    # Role comes from the users table so a demoted user loses access before the token expires
    user = await db.get(User, user_id)
    if not user:
        raise credentials_exception

    return CurrentUser(id=user.id, username=user.username, role=user.role)

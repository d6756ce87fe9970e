import logging
from datetime import datetime, timezone

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.models import User
from school_billing.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)
from school_billing.auth.security import create_access_token, hash_password, token_claims, verify_password
from school_billing.core.exceptions import INTERNAL_ERROR_MESSAGE, ConflictError, NotFoundError, ServiceError

logger = logging.getLogger(__name__)


async def register_user(db: AsyncSession, payload: RegisterRequest) -> RegisterResponse:
    existing = (
        await db.execute(
            select(User.id).where(or_(User.username == payload.username, User.email == payload.email))
        )
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    try:
        user = User(
            username=payload.username.strip(),
            email=payload.email,
            password_hash=hash_password(payload.password),
            role=payload.role.value,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Username or email already exists") from e
    except Exception as e:
        await db.rollback()
        logger.exception("Failed to register user %s", payload.username)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    logger.info("Registered user %s with role %s", user.username, user.role)
    return RegisterResponse(success=True, message="User registered successfully", user_id=user.id)


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    user = (
        await db.execute(select(User).where(User.username == payload.username.strip()))
    ).scalar_one_or_none()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    issued_at = datetime.now(timezone.utc)
    token = create_access_token(
        token_claims(user.id, user.username, user.role, email=user.email, issued_at=issued_at)
    )
    return LoginResponse(
        token=token,
        user=UserInfo(id=user.id, username=user.username, email=user.email, role=user.role),
        issued_at=issued_at,
    )


async def get_user_info(db: AsyncSession, user_id: int) -> UserInfo:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return UserInfo(id=user.id, username=user.username, email=user.email, role=user.role)

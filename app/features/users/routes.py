"""
User and authentication routes.
"""
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.errors import ConflictError, ForbiddenError, UnauthorizedError
from app.core.rate_limit import limiter
from app.features.organizations.membership import list_memberships
from app.features.organizations.schemas import MembershipResponse, OrganizationPublic
from app.features.permissions.schemas import RoleSummary
from app.features.users.auth import (
    create_access_token,
    get_appwrite_user,
    hash_password,
    verify_appwrite_jwt,
    verify_password,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import (
    AppwriteLoginRequest,
    LoginRequest,
    LoginResponse,
    ProfileResponse,
    RegisterRequest,
    UserResponse,
    UserUpdate,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])
auth_router = APIRouter(tags=["auth"])


async def build_profile(db: AsyncSession, user: User) -> ProfileResponse:
    """Serialize a user together with every membership they hold."""
    profile = ProfileResponse.model_validate(user)
    profile.memberships = [
        MembershipResponse(
            organization=OrganizationPublic.model_validate(org),
            role=RoleSummary.model_validate(role),
        )
        for org, role in await list_memberships(db, user.id)
    ]
    return profile


async def _login(db: AsyncSession, user: User) -> LoginResponse:
    if not user.is_active:
        raise ForbiddenError("User account is deactivated")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    return LoginResponse(
        access_token=create_access_token(user),
        user=await build_profile(db, user),
    )


# Authentication endpoints
@auth_router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.AUTH_RATE_LIMIT, key_func=get_remote_address)
async def register(
    request: Request,
    data: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Register with email and password."""
    existing = await db.execute(select(User).where(User.email == data.email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("A user with that email already exists")

    user = User(email=data.email, name=data.name, password=hash_password(data.password))
    try:
        db.add(user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A user with that email already exists")

    await db.refresh(user)
    log.info("Registered user %s", user.id)
    return user


@auth_router.post("/login", response_model=LoginResponse)
@limiter.limit(config.AUTH_RATE_LIMIT, key_func=get_remote_address)
async def login(
    request: Request,
    data: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Login with email and password."""
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if user is None or user.password is None or not verify_password(data.password, user.password):
        raise UnauthorizedError("Invalid email or password")

    return await _login(db, user)


@auth_router.post("/login-appwrite", response_model=LoginResponse)
@limiter.limit(config.AUTH_RATE_LIMIT, key_func=get_remote_address)
async def login_with_appwrite(
    request: Request,
    data: AppwriteLoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Login with an Appwrite session.

    The local user is matched by Appwrite id, then by email, and created on
    first login. An empty avatar is filled from the Appwrite profile.
    """
    appwrite_user_id = verify_appwrite_jwt(data.jwt)
    appwrite_user = await get_appwrite_user(appwrite_user_id)
    email = appwrite_user.get("email")
    if not email:
        raise UnauthorizedError("Appwrite account has no email")

    result = await db.execute(select(User).where(User.appwrite_id == appwrite_user_id))
    user = result.scalar_one_or_none()
    if user is None:
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

    avatar = (appwrite_user.get("prefs") or {}).get("avatar")
    if user is None:
        user = User(
            email=email,
            name=appwrite_user.get("name") or email,
            appwrite_id=appwrite_user_id,
            avatar=avatar,
        )
        db.add(user)
        await db.flush()
        log.info("Created user %s from Appwrite login", user.id)
    else:
        if user.appwrite_id is None:
            user.appwrite_id = appwrite_user_id
        if not user.avatar and avatar:
            user.avatar = avatar

    return await _login(db, user)


# Profile endpoints
@router.get("/me", response_model=ProfileResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get current authenticated user's profile and memberships."""
    return await build_profile(db, user)


@router.patch("/me", response_model=ProfileResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    # Update only provided fields
    if update_data.name is not None:
        user.name = update_data.name
    if update_data.avatar is not None:
        user.avatar = update_data.avatar

    await db.commit()
    await db.refresh(user)
    return await build_profile(db, user)

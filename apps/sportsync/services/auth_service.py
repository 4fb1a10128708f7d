"""
Authentication service: password hashing, JWT bearer tokens, registration and
login, and role checks.
"""

import os
import logging
from datetime import timedelta
from typing import Dict, Optional

import bcrypt
import jwt
from dotenv import load_dotenv

from sportsync.database.models import Role, Plan
from sportsync.models.schemas import UserRecord, RegisterRequest
from sportsync.repositories.base import Repository
from sportsync.services.errors import ConflictError, ValidationFailedError
from sportsync.utils.constants import MIN_PASSWORD_LENGTH
from sportsync.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

# JWT configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "sportsync-dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_DAYS = int(os.getenv("JWT_EXPIRATION_DAYS", "7"))

BCRYPT_ROUNDS = 10

# Role decision tables. Every Role member must appear in each table.
_IS_STAFF: Dict[Role, bool] = {
    Role.PLAYER: False,
    Role.MODERATOR: True,
    Role.ADMIN: True,
}
_IS_ADMIN: Dict[Role, bool] = {
    Role.PLAYER: False,
    Role.MODERATOR: False,
    Role.ADMIN: True,
}
for _table in (_IS_STAFF, _IS_ADMIN):
    _missing = set(Role) - set(_table)
    if _missing:
        raise RuntimeError(f"Role table is missing entries for: {sorted(r.value for r in _missing)}")


def _admin_emails() -> set:
    """Emails promoted to admin at registration (comma-separated ADMIN_EMAILS)."""
    raw = os.getenv("ADMIN_EMAILS", "")
    return {e.strip().lower() for e in raw.split(",") if e.strip()}


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its bcrypt hash.

    Returns:
        True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to encode (user_id, email, role)
        expires_delta: Optional custom lifetime (defaults to JWT_EXPIRATION_DAYS)

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(days=JWT_EXPIRATION_DAYS))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded claims, or None if the token is invalid or expired
    """
    if not token:
        return None
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def issue_token(user: UserRecord) -> str:
    """Issue a bearer token for a user identity."""
    return create_access_token({"user_id": user.id, "email": user.email, "role": user.role.value})


async def authenticate(repo: Repository, token: str) -> Optional[UserRecord]:
    """Resolve a bearer token to the stored user, or None."""
    payload = verify_token(token)
    if payload is None:
        return None
    user_id = payload.get("user_id")
    if user_id is None:
        return None
    return await repo.get_user(int(user_id))


async def register_user(repo: Repository, request: RegisterRequest) -> UserRecord:
    """
    Register a new account on the free plan.

    Raises:
        ValidationFailedError: missing name or password too short
        ConflictError: email already registered
    """
    name = request.name.strip()
    if not name:
        raise ValidationFailedError("Name is required")
    if len(request.password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if await repo.get_user_by_email(request.email) is not None:
        raise ConflictError("Email already registered")

    role = Role.ADMIN if request.email in _admin_emails() else Role.PLAYER
    user = await repo.create_user(
        name=name,
        email=request.email,
        password_hash=hash_password(request.password),
        role=role,
        plan=Plan.FREE,
        position=request.position,
        photo_url=request.photo_url,
    )
    logger.info(f"Registered user {user.id} ({role.value})")
    return user


async def login(repo: Repository, email: str, password: str) -> Optional[UserRecord]:
    """Return the user when the credentials match, otherwise None."""
    user = await repo.get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt")
        return None
    return user


def is_staff(user) -> bool:
    """Moderators and admins."""
    return _IS_STAFF[Role(user.role)]


def is_admin(user) -> bool:
    return _IS_ADMIN[Role(user.role)]

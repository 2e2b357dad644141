from datetime import datetime, timedelta
from typing import Iterable, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
import bcrypt
import logging
import os
import secrets

from errors import AuthError, ForbiddenError
from models import Role
from schemas import TokenData

logger = logging.getLogger(__name__)

# JWT Configuration
SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

# Password hashing cost; lowered only by the test suite
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash using bcrypt.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The bcrypt hashed password to check against

    Returns:
        bool: True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt with salt.

    Args:
        password: The plain text password to hash

    Returns:
        str: The bcrypt hashed password
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def create_access_token(identity: TokenData, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT carrying the caller's login id, profile id and role."""
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": identity.subject_id,
        "pid": identity.profile_id,
        "role": identity.role.value,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> TokenData:
    """Verify a JWT and return its identity. Any defect raises AuthError."""
    try:
        payload = jwt.decode(
            token, SECRET_KEY, algorithms=[ALGORITHM], options={"require_exp": True}
        )
    except JWTError:
        raise AuthError("Could not validate credentials")

    subject_id = payload.get("sub")
    profile_id = payload.get("pid")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise AuthError("Could not validate credentials")
    if not subject_id or not profile_id:
        raise AuthError("Could not validate credentials")
    return TokenData(subject_id=subject_id, profile_id=profile_id, role=role)


def is_authorized(role: Role, allowed: Iterable[Role]) -> bool:
    return role in frozenset(allowed)


# Security scheme; a missing header is reported as AuthError rather than by FastAPI
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")
    return verify_token(credentials.credentials)


def require_roles(*roles: Role):
    """Build a dependency that only admits callers holding one of ``roles``."""
    allowed = frozenset(roles)
    names = " or ".join(sorted(r.value.title() for r in allowed))

    async def dependency(user: TokenData = Depends(get_current_user)) -> TokenData:
        if not is_authorized(user.role, allowed):
            raise ForbiddenError(f"Access denied. {names} role required.")
        return user

    return dependency


require_staff = require_roles(Role.STAFF)
require_donor = require_roles(Role.DONOR)

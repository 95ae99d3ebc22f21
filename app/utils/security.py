from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings
from app.utils.time_utils import utcnow

pwd_context = CryptContext(schemes=["sha256_crypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Malformed hash in storage
        return False


def create_access_token(user_id: str, extra_claims: Optional[Dict[str, Any]] = None,
                        expires_minutes: Optional[int] = None) -> str:
    """Issue a signed token carrying the user id in the `userId` claim."""
    minutes = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    payload: Dict[str, Any] = {
        "userId": user_id,
        "exp": utcnow() + timedelta(minutes=minutes),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.jwt_secret_key.get_secret_value(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Returns the claims, or None if the token is invalid, expired or has no userId."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key.get_secret_value(), algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if not payload.get("userId"):
        return None
    return payload

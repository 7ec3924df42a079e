import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Cookie, Depends, Response
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import get_db, to_object_id, utcnow
from errors import AuthError, NotFoundError

logger = logging.getLogger(__name__)

COOKIE_NAME = "token"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the user id carried by a session token, or None if it is unusable."""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token() -> Tuple[str, str, datetime]:
    """
    Create a password reset token.

    Returns the plaintext token (only ever sent to the user), its sha256 hash
    (the only form that is stored) and the expiry timestamp.
    """
    token = secrets.token_hex(32)
    expires_at = utcnow() + timedelta(minutes=config.RESET_TOKEN_EXPIRE_MINUTES)
    return token, hash_reset_token(token), expires_at


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        max_age=config.COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
        expires=datetime.now(timezone.utc) + timedelta(days=config.COOKIE_MAX_AGE_DAYS),
        samesite="none",
        secure=True,
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value="",
        httponly=True,
        max_age=0,
        expires=0,
        samesite="none",
        secure=True,
    )


# Auth helpers
async def get_current_user_id(
    token: Optional[str] = Cookie(None),
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: Database = Depends(get_db),
) -> str:
    credentials = token or bearer
    if not credentials:
        raise AuthError("Not authorized, please login")
    user_id = decode_access_token(credentials)
    if user_id is None:
        logger.warning("Rejected request with invalid session token")
        raise AuthError("Not authorized, please login")

    oid = to_object_id(user_id)
    if oid is None or db["user"].find_one({"_id": oid}, {"_id": 1}) is None:
        logger.warning("Rejected session token for missing user %s", user_id)
        raise NotFoundError("User Not Found!")
    return user_id

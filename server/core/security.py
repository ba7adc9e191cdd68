# server/core/security.py

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

import config


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass
class TokenData:
    username: str
    user_agent: str = ""
    ip: str = ""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed hash or a password bcrypt refuses
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(username: str, user_agent: str, ip: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=config.JWT_EXPIRED_TIME))
    to_encode = {
        "sub": username,
        "ua": user_agent,
        "ip": ip,
        "iat": now,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """
    Verifies signature and expiry. Raises JWTError when either fails or the
    token carries no subject.
    """
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    username = payload.get("sub")
    if not username:
        raise JWTError("Token has no subject")
    return TokenData(
        username=username,
        user_agent=payload.get("ua", ""),
        ip=payload.get("ip", ""),
    )

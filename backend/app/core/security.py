from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.models.user import Role

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidTokenError(ValueError):
    """Bearer token is malformed, expired, signed with another key or has no subject."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    # patient records created without a temporary password have no hash yet
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    *,
    user_id: int,
    role: Role,
    clinic_id: int | None,
    secret: str,
    alg: str,
    expires_minutes: int,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes)
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "role": role.value,
        "clinic_id": clinic_id,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=alg)


def decode_user_id(token: str, *, secret: str, alg: str) -> int:
    """Return the user id carried by ``token``.

    Only the subject is read; callers load role and clinic from the database.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[alg])
    except JWTError as exc:
        raise InvalidTokenError("Invalid token") from exc
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.isdigit():
        raise InvalidTokenError("Invalid token")
    return int(sub)

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from jose import jwt, JWTError
from passlib.context import CryptContext

from hire_ledger.config import get_settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: int, email: str, role: str) -> str:
    settings = get_settings()

    now = datetime.now(timezone.utc)
    iat = int(now.timestamp())
    exp = iat + settings.access_token_expire_minutes * 60

    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": iat,       # issued at：签发时间
        "exp": exp,       # expire：过期时间
        "jti": uuid4().hex,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenClaims:
    """签名错误 / 结构不对 / 过期 / 缺字段 都抛 ValueError（JWTError 也包在里面）。"""
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError as e:
        raise ValueError(str(e)) from e

    if payload.get("type") not in (None, "access"):
        raise ValueError("Invalid token type")

    sub = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")
    if not sub or not email or not role:
        raise ValueError("Missing claims")

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise ValueError("Invalid subject")

    return TokenClaims(user_id=user_id, email=email, role=role)

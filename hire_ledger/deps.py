from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from hire_ledger.db import get_session
from hire_ledger.error import AuthenticationError
from hire_ledger.models import User
from hire_ledger.security import decode_token
from hire_ledger.services.images import ImageStore, LocalImageStore
from hire_ledger.config import get_settings

# auto_error=False，让我们接管“没带token”的错误格式
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def require_user(
    token: str | None = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    # 1) 没带 token
    if not token:
        raise AuthenticationError("Not authenticated, please log in", code="NOT_AUTHENTICATED")

    # 2) token 无效 / 过期 / secret_key 不一致
    try:
        claims = decode_token(token)
    except ValueError:
        raise AuthenticationError("Token is invalid or expired, please log in again", code="INVALID_TOKEN")

    # 3) token 验过了，但用户被删了或被停用
    user = session.get(User, claims.user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User does not exist or is disabled", code="USER_NOT_FOUND")

    return user


def get_image_store() -> ImageStore:
    settings = get_settings()
    return LocalImageStore(settings.image_dir)

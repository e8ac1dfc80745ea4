import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from hire_ledger.error import AuthenticationError, ConflictError, NotFoundError, ValidationError
from hire_ledger.models import User
from hire_ledger.schemas import PasswordChange, Role, UserCreate, UserUpdate
from hire_ledger.security import hash_password, verify_password
from hire_ledger.services.policy import Action, ensure_allowed

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# passlib 换成 bcrypt 时有 72 bytes 的坑，统一先拦住
MAX_PASSWORD_BYTES = 72


def _clean_email(email: Optional[str]) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", code="INVALID_EMAIL")
    return email


def _check_new_password(password: Optional[str]) -> str:
    if not password:
        raise ValidationError("New password required", code="INVALID_PASSWORD")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", code="INVALID_PASSWORD"
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password too long (max {MAX_PASSWORD_BYTES} bytes)", code="PASSWORD_TOO_LONG"
        )
    return password


def _email_taken(session: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return session.exec(stmt).first() is not None


def _username_taken(session: Session, username: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(User).where(User.username == username)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return session.exec(stmt).first() is not None


def _other_active_admins(session: Session, user_id: int) -> int:
    stmt = (
        select(func.count())
        .select_from(User)
        .where(User.role == Role.admin.value, User.is_active == True, User.id != user_id)  # noqa: E712
    )
    return session.exec(stmt).one()


def _commit_unique(session: Session) -> None:
    # 先查过一遍了，这里兜底并发下的 unique 冲突
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError("Email or username already in use", code="USER_EXISTS")


# ---------- 查询 ----------

def get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(session: Session, actor: User) -> list[User]:
    ensure_allowed(actor.role, Action.LIST_USERS)
    return list(session.exec(select(User).order_by(User.name, User.id)).all())


def view_user(session: Session, user_id: int, actor: User) -> User:
    ensure_allowed(actor.role, Action.LIST_USERS)
    return get_user(session, user_id)


def authenticate(session: Session, login: str, password: str) -> User:
    login = (login or "").strip()
    if not login or not password:
        raise ValidationError("Email and password required")

    stmt = select(User).where(or_(User.email == login.lower(), User.username == login))
    user = session.exec(stmt).first()
    if (not user) or (not verify_password(password, user.password_hash)) or (not user.is_active):
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")
    return user


# ---------- 增删改 ----------

def create_user(session: Session, data: UserCreate, actor: User) -> User:
    ensure_allowed(actor.role, Action.CREATE_USER, target_role=data.role)

    email = _clean_email(data.email)
    name = (data.name or "").strip()
    if not name:
        raise ValidationError("Name required")
    username = (data.username or "").strip() or None
    password = _check_new_password(data.password)

    if _email_taken(session, email):
        raise ConflictError("Email already in use", code="EMAIL_EXISTS")
    if username and _username_taken(session, username):
        raise ConflictError("Username already in use", code="USERNAME_EXISTS")

    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        name=name,
        role=Role(data.role).value,
        is_active=True,
    )
    session.add(user)
    _commit_unique(session)
    session.refresh(user)
    logger.info("user %s (%s) created by user %s", user.id, user.role, actor.id)
    return user


def update_user(session: Session, user_id: int, data: UserUpdate, actor: User) -> User:
    ensure_allowed(actor.role, Action.EDIT_USER)
    user = get_user(session, user_id)
    fields = data.model_dump(exclude_unset=True)
    is_self = user.id == actor.id

    if "is_active" in fields and fields["is_active"] is False and is_self:
        raise ValidationError("Cannot disable your own account", code="SELF_PROTECTION")
    if fields.get("role") is not None and fields["role"] != Role.admin and is_self:
        raise ValidationError("Cannot change your own role", code="SELF_PROTECTION")

    demoting = fields.get("role") is not None and fields["role"] != Role.admin
    disabling = fields.get("is_active") is False
    if user.role == Role.admin.value and user.is_active and (demoting or disabling):
        if _other_active_admins(session, user.id) == 0:
            raise ConflictError("At least one active admin is required", code="LAST_ADMIN")

    # 先全部校验，再一起写回，避免校验到一半 session 里留下脏数据
    changes: dict = {}
    if "email" in fields:
        email = _clean_email(fields["email"])
        if email != user.email and _email_taken(session, email, exclude_id=user.id):
            raise ConflictError("Email already in use", code="EMAIL_EXISTS")
        changes["email"] = email

    if "username" in fields:
        username = (fields["username"] or "").strip() or None
        if username and username != user.username and _username_taken(session, username, exclude_id=user.id):
            raise ConflictError("Username already in use", code="USERNAME_EXISTS")
        changes["username"] = username

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise ValidationError("Name required")
        changes["name"] = name

    if fields.get("role") is not None:
        changes["role"] = Role(fields["role"]).value

    if fields.get("is_active") is not None:
        changes["is_active"] = fields["is_active"]

    for key, value in changes.items():
        setattr(user, key, value)

    session.add(user)
    _commit_unique(session)
    session.refresh(user)
    logger.info("user %s updated by user %s", user.id, actor.id)
    return user


def delete_user(session: Session, user_id: int, actor: User) -> None:
    ensure_allowed(actor.role, Action.DELETE_USER, is_self=(user_id == actor.id))
    user = get_user(session, user_id)

    if user.role == Role.admin.value and user.is_active and _other_active_admins(session, user.id) == 0:
        raise ConflictError("At least one active admin is required", code="LAST_ADMIN")

    session.delete(user)
    session.commit()
    logger.info("user %s deleted by user %s", user_id, actor.id)


def change_password(session: Session, user_id: int, data: PasswordChange, actor: User) -> None:
    is_self = user_id == actor.id
    ensure_allowed(actor.role, Action.CHANGE_USER_PASSWORD, is_self=is_self)

    new_password = _check_new_password(data.new_password)
    user = get_user(session, user_id)

    # 非 admin 改自己的密码要校验当前密码；admin 直接重置
    if is_self and actor.role != Role.admin.value:
        if not data.current_password:
            raise ValidationError("Current password required", code="CURRENT_PASSWORD_REQUIRED")
        if not verify_password(data.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", code="WRONG_PASSWORD")

    user.password_hash = hash_password(new_password)
    session.add(user)
    session.commit()
    logger.info("password of user %s changed by user %s", user_id, actor.id)


def change_own_password(session: Session, data: PasswordChange, actor: User) -> None:
    ensure_allowed(actor.role, Action.CHANGE_OWN_PASSWORD)

    if not data.current_password:
        raise ValidationError("Current and new password required", code="CURRENT_PASSWORD_REQUIRED")
    new_password = _check_new_password(data.new_password)
    if not verify_password(data.current_password, actor.password_hash):
        raise ValidationError("Current password is incorrect", code="WRONG_PASSWORD")

    actor.password_hash = hash_password(new_password)
    session.add(actor)
    session.commit()
    logger.info("user %s changed own password", actor.id)


def ensure_bootstrap_admin(session: Session, email: str, password: str, name: str) -> Optional[User]:
    """库里还没有任何用户时建第一个 admin；已有用户则什么都不做。"""
    if session.exec(select(User)).first() is not None:
        return None

    user = User(
        email=_clean_email(email),
        password_hash=hash_password(_check_new_password(password)),
        name=name,
        role=Role.admin.value,
        is_active=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("bootstrap admin %s created", user.email)
    return user

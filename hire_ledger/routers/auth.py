from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from hire_ledger.db import get_session
from hire_ledger.deps import require_user
from hire_ledger.models import User
from hire_ledger.schemas import PasswordChange, Token, UserRead
from hire_ledger.security import create_access_token
from hire_ledger.services import users as user_service
from hire_ledger.services.policy import Action, ensure_allowed

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    # username 字段既可以填邮箱也可以填用户名
    user = user_service.authenticate(session, form_data.username, form_data.password)
    token = create_access_token(user.id, user.email, user.role)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    }


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(require_user)):
    ensure_allowed(user.role, Action.VIEW_OWN_PROFILE)
    return user


@router.put("/password")
def change_own_password(
    body: PasswordChange,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    user_service.change_own_password(session, body, user)
    return {"ok": True}

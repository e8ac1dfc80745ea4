from fastapi import APIRouter, Depends
from sqlmodel import Session

from hire_ledger.db import get_session
from hire_ledger.deps import require_user
from hire_ledger.models import User
from hire_ledger.schemas import Created, PasswordChange, UserCreate, UserRead, UserUpdate
from hire_ledger.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserRead])
def list_users(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return user_service.list_users(session, user)


@router.post("", response_model=Created)
def create_user(
    data: UserCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    created = user_service.create_user(session, data, user)
    return {"id": created.id}


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return user_service.view_user(session, user_id, user)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    data: UserUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return user_service.update_user(session, user_id, data, user)


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    user_service.delete_user(session, user_id, user)
    return {"ok": True}


@router.put("/{user_id}/password")
def change_password(
    user_id: int,
    body: PasswordChange,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    user_service.change_password(session, user_id, body, user)
    return {"ok": True}

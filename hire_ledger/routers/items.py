from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from hire_ledger.db import get_session
from hire_ledger.deps import require_user
from hire_ledger.models import User
from hire_ledger.schemas import CatalogItemCreate, CatalogItemRead, CatalogItemUpdate
from hire_ledger.services import catalog
from hire_ledger.services.policy import Action, ensure_allowed

router = APIRouter(prefix="/items", tags=["items"])


@router.get("", response_model=list[CatalogItemRead])
def list_items(
    available: bool = Query(False, description="只列出可下单（未停用）的条目"),
    q: str | None = None,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return catalog.list_items(session, user, available_only=available, q=q)


@router.post("", response_model=CatalogItemRead)
def create_item(
    data: CatalogItemCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return catalog.create_item(session, data, user)


@router.get("/{item_id}", response_model=CatalogItemRead)
def get_item(
    item_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.VIEW_CATALOG)
    return catalog.get_item(session, item_id)


@router.put("/{item_id}", response_model=CatalogItemRead)
def update_item(
    item_id: int,
    data: CatalogItemUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return catalog.update_item(session, item_id, data, user)


@router.delete("/{item_id}")
def delete_item(
    item_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    catalog.delete_item(session, item_id, user)
    return {"ok": True}

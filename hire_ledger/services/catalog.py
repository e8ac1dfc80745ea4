import logging

from sqlalchemy import func
from sqlmodel import Session, select

from hire_ledger.error import ConflictError, NotFoundError, ValidationError
from hire_ledger.models import CatalogItem, OrderLine, User
from hire_ledger.schemas import CatalogItemCreate, CatalogItemUpdate
from hire_ledger.services.policy import Action, ensure_allowed

logger = logging.getLogger(__name__)


def get_item(session: Session, item_id: int) -> CatalogItem:
    item = session.get(CatalogItem, item_id)
    if not item:
        raise NotFoundError("Catalog item not found")
    return item


def list_items(session: Session, actor: User, available_only: bool = False, q: str | None = None) -> list[CatalogItem]:
    ensure_allowed(actor.role, Action.VIEW_CATALOG)
    stmt = select(CatalogItem)
    if available_only:
        # 停用的条目只给历史订单行引用，不出现在“可下单”列表里
        stmt = stmt.where(CatalogItem.is_active == True)  # noqa: E712
    if q:
        stmt = stmt.where(CatalogItem.name.contains(q))
    return list(session.exec(stmt.order_by(CatalogItem.name, CatalogItem.id)).all())


def create_item(session: Session, data: CatalogItemCreate, actor: User) -> CatalogItem:
    ensure_allowed(actor.role, Action.MANAGE_CATALOG)
    name = (data.name or "").strip()
    if not name:
        raise ValidationError("Name required")

    item = CatalogItem(
        name=name,
        category=data.category,
        description=data.description,
        image_url=data.image_url,
        is_active=True,
    )
    session.add(item)
    session.commit()
    session.refresh(item)
    logger.info("catalog item %s created by user %s", item.id, actor.id)
    return item


def update_item(session: Session, item_id: int, data: CatalogItemUpdate, actor: User) -> CatalogItem:
    ensure_allowed(actor.role, Action.MANAGE_CATALOG)
    item = get_item(session, item_id)
    fields = data.model_dump(exclude_unset=True)

    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name:
            raise ValidationError("Name required")
        fields["name"] = name
    if "is_active" in fields and fields["is_active"] is None:
        raise ValidationError("is_active cannot be null")

    for key, value in fields.items():
        setattr(item, key, value)

    session.add(item)
    session.commit()
    session.refresh(item)
    return item


def delete_item(session: Session, item_id: int, actor: User) -> None:
    ensure_allowed(actor.role, Action.MANAGE_CATALOG)
    item = get_item(session, item_id)

    used = session.exec(
        select(func.count()).select_from(OrderLine).where(OrderLine.catalog_item_id == item.id)
    ).one()
    if used:
        raise ConflictError(
            f"Item is used by {used} order lines, deactivate it instead", code="ITEM_IN_USE"
        )

    session.delete(item)
    session.commit()
    logger.info("catalog item %s deleted by user %s", item_id, actor.id)

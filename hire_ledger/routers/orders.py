from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel import Session, select

from hire_ledger.db import get_session
from hire_ledger.deps import require_user
from hire_ledger.models import Order, User
from hire_ledger.schemas import (
    Created,
    LineMovementRequest,
    OrderCreate,
    OrderLineCreate,
    OrderListResponse,
    OrderRead,
    OrderUpdate,
)
from hire_ledger.services import lifecycle
from hire_ledger.services.export import build_orders_workbook
from hire_ledger.services.policy import Action, ensure_allowed
from hire_ledger.time_utils import utc_today

router = APIRouter(prefix="/orders", tags=["orders"])


def serialize_order(order: Order, today: Optional[date] = None) -> dict:
    data = order.model_dump()
    data["is_overdue"] = lifecycle.is_overdue(order, today)
    data["items"] = [
        {
            "id": line.id,
            "catalog_item_id": line.catalog_item_id,
            "name": line.display_name,
            "quantity": line.quantity,
            "quantity_checked_out": line.quantity_checked_out,
            "quantity_checked_in": line.quantity_checked_in,
            "notes": line.notes,
        }
        for line in order.lines
    ]
    return data


@router.get("", response_model=OrderListResponse)
def list_orders(
    status: str = Query("all", description="all / active / 具体状态(draft, out, ...)"),
    q: str | None = Query(None, description="按客户名/邮箱搜索"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.VIEW_ORDER)
    orders, total = lifecycle.list_orders(session, status=status, q=q, limit=limit, offset=offset)
    today = utc_today()
    items = [
        {
            "id": o.id,
            "customer_name": o.customer_name,
            "status": o.status,
            "event_date": o.event_date,
            "expected_return_date": o.expected_return_date,
            "item_count": len(o.lines),
            "is_overdue": lifecycle.is_overdue(o, today),
        }
        for o in orders
    ]
    return {"items": items, "total": total, "limit": limit, "offset": offset, "q": q}


@router.post("", response_model=Created)
def create_order(
    data: OrderCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    order = lifecycle.create_order(session, data, user)
    return {"id": order.id}


@router.get("/export.xlsx")
def export_orders_xlsx(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.VIEW_ORDER)
    orders = session.exec(select(Order).order_by(Order.id.asc())).all()
    xlsx_bytes = build_orders_workbook(orders)

    return Response(
        content=xlsx_bytes,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="orders.xlsx"'},
    )


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_allowed(user.role, Action.VIEW_ORDER)
    return serialize_order(lifecycle.get_order(session, order_id))


@router.put("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: int,
    data: OrderUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return serialize_order(lifecycle.update_order(session, order_id, data, user))


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    lifecycle.delete_order(session, order_id, user)
    return {"ok": True}


@router.post("/{order_id}/items", response_model=Created)
def add_item(
    order_id: int,
    data: OrderLineCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    line = lifecycle.add_line(session, order_id, data, user)
    return {"id": line.id}


@router.post("/{order_id}/checkout", response_model=OrderRead)
def checkout(
    order_id: int,
    body: LineMovementRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    lines = [(i.item_id, i.quantity) for i in body.items]
    return serialize_order(lifecycle.check_out(session, order_id, lines, user))


@router.post("/{order_id}/checkin", response_model=OrderRead)
def checkin(
    order_id: int,
    body: LineMovementRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    lines = [(i.item_id, i.quantity) for i in body.items]
    return serialize_order(lifecycle.check_in(session, order_id, lines, user))

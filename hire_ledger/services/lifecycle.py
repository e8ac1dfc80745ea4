"""
订单生命周期：

    draft -> (confirmed) -> out -> partial_return -> returned -> completed

out / partial_return / returned 只由出库(check_out)、归还(check_in)推出来；
手动改状态只允许 draft <-> confirmed、returned -> completed。
每次 check_in 之后按订单下 *所有* 行重新对账，见 reconcile_status。
"""
import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from hire_ledger.error import ConflictError, HireLedgerError, NotFoundError, ValidationError
from hire_ledger.models import CatalogItem, Order, OrderLine, User
from hire_ledger.schemas import OrderCreate, OrderLineCreate, OrderStatus, OrderUpdate
from hire_ledger.services.policy import Action, ensure_allowed
from hire_ledger.time_utils import utc_today, utcnow

logger = logging.getLogger(__name__)

OUT_STATUSES = frozenset({OrderStatus.out, OrderStatus.partial_return})
CLOSED_STATUSES = frozenset({OrderStatus.returned, OrderStatus.completed})
# 没出过库的订单不能归还
CHECKIN_STATUSES = OUT_STATUSES | {OrderStatus.returned}

MANUAL_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.draft: frozenset({OrderStatus.confirmed}),
    OrderStatus.confirmed: frozenset({OrderStatus.draft}),
    OrderStatus.returned: frozenset({OrderStatus.completed}),
}


# ---------- 纯函数 ----------

def is_overdue(order: Order, today: Optional[date] = None) -> bool:
    if OrderStatus(order.status) not in OUT_STATUSES:
        return False
    if order.expected_return_date is None:
        return False
    return order.expected_return_date < (today or utc_today())


def is_active(order: Order) -> bool:
    return OrderStatus(order.status) not in CLOSED_STATUSES


def reconcile_status(lines: Iterable[OrderLine], touched: bool) -> OrderStatus:
    """
    归还后的订单状态：
      1. 每行 in >= out            -> returned
      2. 有行 0 < in < out         -> partial_return
      3. 本次提交碰到了至少一行    -> partial_return（即使这一行已经全还、或者数量是 0）
      4. 否则                      -> out
    第 3 条是历史行为，保留。
    """
    lines = list(lines)
    all_returned = all(l.quantity_checked_in >= l.quantity_checked_out for l in lines)
    any_partial = any(0 < l.quantity_checked_in < l.quantity_checked_out for l in lines)

    if all_returned:
        return OrderStatus.returned
    if any_partial or touched:
        return OrderStatus.partial_return
    return OrderStatus.out


def _aggregate(lines: Sequence[tuple[int, int]], *, allow_zero: bool) -> dict[int, int]:
    if not lines:
        raise ValidationError("No items given", code="EMPTY_ITEMS")

    totals: dict[int, int] = {}
    for line_id, qty in lines:
        if qty < 0 or (qty == 0 and not allow_zero):
            raise ValidationError(f"Quantity for item {line_id} must be > 0", code="INVALID_QUANTITY")
        totals[line_id] = totals.get(line_id, 0) + qty
    return totals


# ---------- 读取 ----------

def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _lock_order(session: Session, order_id: int) -> Order:
    # SQLite 会忽略 FOR UPDATE，其他数据库会锁住这一行
    order = session.exec(select(Order).where(Order.id == order_id).with_for_update()).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def order_lines(session: Session, order_id: int) -> list[OrderLine]:
    stmt = (
        select(OrderLine)
        .where(OrderLine.order_id == order_id)
        .order_by(OrderLine.id)
        .execution_options(populate_existing=True)
    )
    return list(session.exec(stmt).all())


def _lines_by_id(session: Session, order: Order, wanted: Iterable[int]) -> dict[int, OrderLine]:
    by_id = {l.id: l for l in order_lines(session, order.id)}
    for line_id in wanted:
        if line_id not in by_id:
            raise NotFoundError(f"Item {line_id} not found on order {order.id}")
    return by_id


def list_orders(
    session: Session,
    status: str = "all",
    q: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    conds = []
    if status == "active":
        conds.append(Order.status.not_in([s.value for s in CLOSED_STATUSES]))
    elif status and status != "all":
        try:
            conds.append(Order.status == OrderStatus(status).value)
        except ValueError:
            raise ValidationError(f"Unsupported status filter: {status}")

    if q:
        conds.append(or_(Order.customer_name.contains(q), Order.customer_email.contains(q)))

    count_stmt = select(func.count()).select_from(Order)
    items_stmt = select(Order)
    if conds:
        count_stmt = count_stmt.where(*conds)
        items_stmt = items_stmt.where(*conds)

    total = session.exec(count_stmt).one()
    items = session.exec(
        items_stmt.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
    ).all()
    return list(items), total


# ---------- 建单 / 改单 / 删单 ----------

def _build_line(session: Session, data: OrderLineCreate) -> OrderLine:
    custom_name = (data.custom_item_name or "").strip() or None

    if (data.catalog_item_id is None) == (custom_name is None):
        raise ValidationError(
            "Exactly one of catalog_item_id or custom_item_name is required", code="INVALID_ITEM"
        )
    if data.quantity < 1:
        raise ValidationError("Quantity must be at least 1", code="INVALID_QUANTITY")

    if data.catalog_item_id is not None:
        item = session.get(CatalogItem, data.catalog_item_id)
        if not item:
            raise NotFoundError("Catalog item not found")
        if not item.is_active:
            raise ValidationError(f"Catalog item '{item.name}' is not available", code="ITEM_INACTIVE")

    return OrderLine(
        catalog_item_id=data.catalog_item_id,
        custom_item_name=custom_name,
        quantity=data.quantity,
        quantity_checked_out=0,
        quantity_checked_in=0,
        notes=data.notes,
    )


def create_order(session: Session, data: OrderCreate, actor: User) -> Order:
    ensure_allowed(actor.role, Action.CREATE_ORDER)

    name = (data.customer_name or "").strip()
    if not name:
        raise ValidationError("Customer name required")

    try:
        order = Order(
            customer_name=name,
            customer_phone=data.customer_phone,
            customer_email=data.customer_email,
            delivery_address=data.delivery_address,
            event_date=data.event_date,
            expected_return_date=data.expected_return_date,
            notes=data.notes,
            status=OrderStatus.draft.value,
            created_by=actor.id,
        )
        for line_data in data.items:
            order.lines.append(_build_line(session, line_data))

        session.add(order)
        session.commit()
    except HireLedgerError:
        session.rollback()
        raise

    session.refresh(order)
    logger.info("order %s created by user %s with %d lines", order.id, actor.id, len(data.items))
    return order


def add_line(session: Session, order_id: int, data: OrderLineCreate, actor: User) -> OrderLine:
    ensure_allowed(actor.role, Action.ADD_LINE)
    order = get_order(session, order_id)
    _ensure_open(order)

    line = _build_line(session, data)
    line.order_id = order.id
    session.add(line)
    session.commit()
    session.refresh(line)
    logger.info("line %s added to order %s by user %s", line.id, order.id, actor.id)
    return line


def update_order(session: Session, order_id: int, data: OrderUpdate, actor: User) -> Order:
    ensure_allowed(actor.role, Action.EDIT_ORDER)
    order = get_order(session, order_id)

    fields = data.model_dump(exclude_unset=True)

    if "customer_name" in fields:
        name = (fields["customer_name"] or "").strip()
        if not name:
            raise ValidationError("Customer name required")
        fields["customer_name"] = name

    if "status" in fields:
        new_status = fields.pop("status")
        if new_status is None:
            raise ValidationError("Status cannot be empty", code="INVALID_STATUS")
        current = OrderStatus(order.status)
        if new_status != current:
            if new_status not in MANUAL_TRANSITIONS.get(current, frozenset()):
                raise ValidationError(
                    f"Cannot change status from {current.value} to {new_status.value}",
                    code="INVALID_TRANSITION",
                )
            order.status = new_status.value

    for key, value in fields.items():
        setattr(order, key, value)

    order.updated_at = utcnow()
    session.add(order)
    session.commit()
    session.refresh(order)
    logger.info("order %s updated by user %s (status=%s)", order.id, actor.id, order.status)
    return order


def delete_order(session: Session, order_id: int, actor: User) -> None:
    ensure_allowed(actor.role, Action.DELETE_ORDER)
    order = get_order(session, order_id)
    session.delete(order)
    session.commit()
    logger.info("order %s deleted by user %s", order_id, actor.id)


# ---------- 出库 / 归还 ----------

def _ensure_open(order: Order) -> None:
    if order.status == OrderStatus.completed.value:
        raise ValidationError("Order is completed", code="ORDER_COMPLETED")


def _increment(session: Session, line_id: int, qty: int, *, checkin: bool, actor_id: int, now) -> None:
    # 原子自增 + 上限守卫：并发下另一个请求先占了余量，这里就匹配不到行
    if checkin:
        stmt = (
            update(OrderLine)
            .where(
                OrderLine.id == line_id,
                OrderLine.quantity_checked_in + qty <= OrderLine.quantity_checked_out,
            )
            .values(
                quantity_checked_in=OrderLine.quantity_checked_in + qty,
                checked_in_by=actor_id,
                checked_in_at=now,
            )
        )
    else:
        stmt = (
            update(OrderLine)
            .where(
                OrderLine.id == line_id,
                OrderLine.quantity_checked_out + qty <= OrderLine.quantity,
            )
            .values(
                quantity_checked_out=OrderLine.quantity_checked_out + qty,
                checked_out_by=actor_id,
                checked_out_at=now,
            )
        )
    result = session.exec(stmt.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        raise ConflictError(
            f"Item {line_id} was changed by another request, please retry", code="CONCURRENT_UPDATE"
        )


def check_out(session: Session, order_id: int, lines: Sequence[tuple[int, int]], actor: User) -> Order:
    ensure_allowed(actor.role, Action.CHECK_OUT)
    try:
        order = _lock_order(session, order_id)
        _ensure_open(order)
        requested = _aggregate(lines, allow_zero=False)
        by_id = _lines_by_id(session, order, requested)

        for line_id, qty in requested.items():
            line = by_id[line_id]
            remaining = line.quantity - line.quantity_checked_out
            if qty > remaining:
                raise ValidationError(
                    f"Item {line_id}: only {remaining} left to check out, got {qty}",
                    code="QUANTITY_EXCEEDED",
                )

        now = utcnow()
        for line_id, qty in requested.items():
            _increment(session, line_id, qty, checkin=False, actor_id=actor.id, now=now)

        # 不管是第一次还是追加出库，状态都回到 out
        order.status = OrderStatus.out.value
        order.out_date = now
        order.actual_return_date = None
        order.updated_at = now
        session.add(order)
        session.commit()
    except HireLedgerError as e:
        session.rollback()
        logger.warning("checkout rejected: order=%s user=%s reason=%s", order_id, actor.id, e.code)
        raise

    session.refresh(order)
    logger.info("checkout order=%s lines=%s by user=%s", order.id, requested, actor.id)
    return order


def check_in(session: Session, order_id: int, lines: Sequence[tuple[int, int]], actor: User) -> Order:
    ensure_allowed(actor.role, Action.CHECK_IN)
    try:
        order = _lock_order(session, order_id)
        _ensure_open(order)
        if OrderStatus(order.status) not in CHECKIN_STATUSES:
            raise ValidationError(
                f"Order {order.id} has not been checked out ({order.status})", code="ORDER_NOT_OUT"
            )
        requested = _aggregate(lines, allow_zero=True)
        by_id = _lines_by_id(session, order, requested)

        for line_id, qty in requested.items():
            line = by_id[line_id]
            outstanding = line.quantity_checked_out - line.quantity_checked_in
            if qty > outstanding:
                raise ValidationError(
                    f"Item {line_id}: only {outstanding} outstanding, got {qty}",
                    code="QUANTITY_EXCEEDED",
                )

        now = utcnow()
        for line_id, qty in requested.items():
            if qty > 0:
                _increment(session, line_id, qty, checkin=True, actor_id=actor.id, now=now)

        fresh = order_lines(session, order.id)
        status = reconcile_status(fresh, touched=bool(requested))

        order.status = status.value
        order.actual_return_date = now if status == OrderStatus.returned else None
        order.updated_at = now
        session.add(order)
        session.commit()
    except HireLedgerError as e:
        session.rollback()
        logger.warning("checkin rejected: order=%s user=%s reason=%s", order_id, actor.id, e.code)
        raise

    session.refresh(order)
    logger.info("checkin order=%s lines=%s by user=%s -> %s", order.id, requested, actor.id, order.status)
    return order

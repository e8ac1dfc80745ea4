from datetime import date
from typing import Optional, Sequence

from sqlmodel import Session, select

from hire_ledger.models import Order, OrderLine
from hire_ledger.schemas import ActivityRead, ActivityType, DashboardRead, OrderStatus
from hire_ledger.services.lifecycle import OUT_STATUSES, is_active, is_overdue
from hire_ledger.time_utils import as_utc, utc_today

RECENT_ACTIVITY_LIMIT = 10


def recent_activity(
    orders: Sequence[Order], lines: Sequence[OrderLine], limit: int = RECENT_ACTIVITY_LIMIT
) -> list[ActivityRead]:
    # 按“行 + 事件”粒度：一次出库碰了 3 行就是 3 条记录，item_count 固定 1
    names = {o.id: o.customer_name for o in orders}
    events: list[ActivityRead] = []
    for line in lines:
        if line.order_id not in names:
            continue
        if line.checked_out_at is not None:
            events.append(ActivityRead(
                id=line.id,
                order_id=line.order_id,
                type=ActivityType.checkout,
                order_name=names[line.order_id],
                timestamp=as_utc(line.checked_out_at),
            ))
        if line.checked_in_at is not None:
            events.append(ActivityRead(
                id=line.id,
                order_id=line.order_id,
                type=ActivityType.checkin,
                order_name=names[line.order_id],
                timestamp=as_utc(line.checked_in_at),
            ))

    # sorted 是稳定排序，时间相同保持原顺序
    events = sorted(events, key=lambda e: e.timestamp, reverse=True)
    return events[:limit]


def build_dashboard(
    orders: Sequence[Order], lines: Sequence[OrderLine], today: Optional[date] = None
) -> DashboardRead:
    today = today or utc_today()
    out_order_ids = {o.id for o in orders if OrderStatus(o.status) in OUT_STATUSES}

    items_out = sum(
        l.quantity_checked_out - l.quantity_checked_in for l in lines if l.order_id in out_order_ids
    )

    return DashboardRead(
        items_out=items_out,
        overdue_orders=sum(1 for o in orders if is_overdue(o, today)),
        active_orders=sum(1 for o in orders if is_active(o)),
        recent_activity=recent_activity(orders, lines),
    )


def load_dashboard(session: Session, today: Optional[date] = None) -> DashboardRead:
    orders = session.exec(select(Order)).all()
    lines = session.exec(select(OrderLine).order_by(OrderLine.id)).all()
    return build_dashboard(orders, lines, today)

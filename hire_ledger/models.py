from typing import Optional
from datetime import date, datetime

from sqlalchemy import CheckConstraint
from sqlmodel import SQLModel, Field, Relationship

from hire_ledger.time_utils import utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    username: Optional[str] = Field(default=None, index=True, unique=True)
    password_hash: str
    name: str
    role: str = Field(default="staff", index=True)  # admin / manager / staff
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class CatalogItem(SQLModel, table=True):
    __tablename__ = "catalog_items"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    category: Optional[str] = Field(default=None, index=True)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = Field(default=True)


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)

    customer_name: str = Field(index=True)
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None

    event_date: Optional[date] = None
    out_date: Optional[datetime] = None
    expected_return_date: Optional[date] = Field(default=None, index=True)
    actual_return_date: Optional[datetime] = None

    status: str = Field(default="draft", index=True)
    notes: Optional[str] = None

    created_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    lines: list["OrderLine"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "OrderLine.id",
        },
    )


class OrderLine(SQLModel, table=True):
    __tablename__ = "order_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_line_quantity"),
        CheckConstraint(
            "quantity_checked_in >= 0"
            " AND quantity_checked_in <= quantity_checked_out"
            " AND quantity_checked_out <= quantity",
            name="ck_line_checked_bounds",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True, ondelete="CASCADE")

    # catalog_item_id / custom_item_name 二选一
    catalog_item_id: Optional[int] = Field(default=None, foreign_key="catalog_items.id", index=True)
    custom_item_name: Optional[str] = None

    quantity: int = Field(default=1)
    quantity_checked_out: int = Field(default=0)
    quantity_checked_in: int = Field(default=0)

    checked_out_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    checked_in_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    checked_out_at: Optional[datetime] = Field(default=None, index=True)
    checked_in_at: Optional[datetime] = Field(default=None, index=True)

    notes: Optional[str] = None

    order: Optional[Order] = Relationship(back_populates="lines")
    catalog_item: Optional[CatalogItem] = Relationship()

    @property
    def display_name(self) -> str:
        if self.catalog_item is not None:
            return self.catalog_item.name
        return self.custom_item_name or "Unknown Item"

    @property
    def outstanding(self) -> int:
        return self.quantity_checked_out - self.quantity_checked_in

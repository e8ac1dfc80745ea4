from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field
from datetime import date, datetime


class Role(str, Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"


class OrderStatus(str, Enum):
    draft = "draft"
    confirmed = "confirmed"
    out = "out"
    partial_return = "partial_return"
    returned = "returned"
    completed = "completed"


class ActivityType(str, Enum):
    checkout = "checkout"
    checkin = "checkin"


# ---------- auth / users ----------

class UserSummary(BaseModel):
    id: int
    email: str
    name: str
    role: Role


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSummary


class UserCreate(BaseModel):
    email: str
    username: Optional[str] = None
    password: str
    name: str
    role: Role = Role.staff


class UserUpdate(BaseModel):
    # 只提交要改的字段；username 传 "" 表示清空
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class UserRead(BaseModel):
    id: int
    email: str
    username: Optional[str] = None
    name: str
    role: Role
    is_active: bool
    created_at: datetime


class PasswordChange(BaseModel):
    current_password: Optional[str] = None
    new_password: str


# ---------- catalog ----------

class CatalogItemCreate(BaseModel):
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class CatalogItemUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class CatalogItemRead(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool


# ---------- orders ----------

class OrderLineCreate(BaseModel):
    catalog_item_id: Optional[int] = None
    custom_item_name: Optional[str] = None
    quantity: int = 1
    notes: Optional[str] = None


class OrderCreate(BaseModel):
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None
    event_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    notes: Optional[str] = None
    items: list[OrderLineCreate] = Field(default_factory=list)


class OrderUpdate(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None
    event_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None


class OrderLineRead(BaseModel):
    id: int
    catalog_item_id: Optional[int] = None
    name: str
    quantity: int
    quantity_checked_out: int
    quantity_checked_in: int
    notes: Optional[str] = None


class OrderRead(BaseModel):
    id: int
    customer_name: str
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None
    event_date: Optional[date] = None
    out_date: Optional[datetime] = None
    expected_return_date: Optional[date] = None
    actual_return_date: Optional[datetime] = None
    status: OrderStatus
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool
    items: list[OrderLineRead]


class OrderListItem(BaseModel):
    id: int
    customer_name: str
    status: OrderStatus
    event_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    item_count: int
    is_overdue: bool


class OrderListResponse(BaseModel):
    items: list[OrderListItem]
    total: int
    limit: int
    offset: int
    q: str | None = None


class LineQuantity(BaseModel):
    item_id: int
    quantity: int


class LineMovementRequest(BaseModel):
    items: list[LineQuantity] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"items": [{"item_id": 1, "quantity": 2}, {"item_id": 2, "quantity": 1}]},
            ]
        }
    }


class Created(BaseModel):
    id: int


# ---------- dashboard ----------

class ActivityRead(BaseModel):
    id: int
    order_id: int
    type: ActivityType
    order_name: str
    item_count: int = 1
    timestamp: datetime


class DashboardRead(BaseModel):
    items_out: int
    overdue_orders: int
    active_orders: int
    recent_activity: list[ActivityRead]


# ---------- images ----------

class ImageUploadResponse(BaseModel):
    url: str
    filename: str

"""
Pydantic Schemas for Request/Response Validation

Grouped by resource: auth, restaurants & users, menu, tables, orders &
kitchen, settings, loyalty, support, HR, payments, reports and health.
"""

import json
import re
from datetime import date, datetime
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, Field, field_validator, model_validator

from dinehub.models import (
    AttendanceStatus,
    ComplaintPriority,
    ComplaintStatus,
    RoleName,
)


def _parse_items(v: Any) -> Any:
    """Order items are stored as a JSON string; expose them as a list."""
    if isinstance(v, str):
        return json.loads(v) if v else []
    return v


# =============================================================================
# COMMON
# =============================================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


# =============================================================================
# AUTH
# =============================================================================

class SignupRequest(BaseModel):
    email: str = Field(..., max_length=255, examples=["jane@example.com"])
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20, examples=["+15551234567"])

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not re.match(r'^[\w\.\+-]+@[\w\.-]+\.\w+$', v):
            raise ValueError('Invalid email format')
        return v.lower()


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str]
    role_name: str
    restaurant_id: Optional[int]
    is_active: bool
    email_verified: bool
    phone_verified: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class OTPRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class OTPVerifyRequest(OTPRequest):
    otp: str = Field(..., min_length=1, max_length=10)


class PasswordResetRequest(OTPVerifyRequest):
    new_password: str = Field(..., min_length=8, max_length=128)


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8, max_length=128)


class OTPSentResponse(BaseModel):
    success: bool = True
    message: str
    channels: List[str]
    expires_in_minutes: int
    otp: Optional[str] = None  # development mode only


class SessionResponse(BaseModel):
    id: int
    user_id: int
    token_id: str
    expires: datetime
    last_active_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class LogoutAllResponse(BaseModel):
    success: bool = True
    sessions_revoked: int


class LoginLogResponse(BaseModel):
    id: int
    user_id: int
    ip_address: str
    user_agent: Optional[str]
    device: Optional[str]
    location: Optional[dict] = None
    status: str
    created_at: datetime

    @field_validator("location", mode="before")
    @classmethod
    def parse_location(cls, v):
        if isinstance(v, str):
            return json.loads(v) if v else None
        return v

    class Config:
        from_attributes = True


class LoginLogListResponse(BaseModel):
    total: int
    page: int
    limit: int
    logs: List[LoginLogResponse]


# =============================================================================
# RESTAURANTS & STAFF USERS
# =============================================================================

class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=120, examples=["Bella Napoli"])
    slug: str = Field(..., min_length=2, max_length=120, pattern=r"^[a-z0-9-]+$", examples=["bella-napoli"])
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class RestaurantResponse(BaseModel):
    id: int
    name: str
    slug: str
    phone: Optional[str]
    address: Optional[str]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StaffUserCreate(SignupRequest):
    role: RoleName = RoleName.KITCHEN
    restaurant_id: Optional[int] = None


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=20)
    role: Optional[RoleName] = None
    is_active: Optional[bool] = None


# =============================================================================
# MENU
# =============================================================================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizzas"])
    description: Optional[str] = None
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str]
    sort_order: int
    is_active: bool

    class Config:
        from_attributes = True


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizza Margherita"])
    description: Optional[str] = None
    price: float = Field(..., gt=0, examples=[14.99])
    category_id: Optional[int] = None
    prep_time_minutes: int = Field(default=10, ge=0, le=240)
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    category_id: Optional[int] = None
    prep_time_minutes: Optional[int] = Field(None, ge=0, le=240)
    is_available: Optional[bool] = None


class MenuItemResponse(BaseModel):
    id: int
    restaurant_id: int
    category_id: Optional[int]
    name: str
    description: Optional[str]
    price: float
    prep_time_minutes: int
    is_available: bool

    class Config:
        from_attributes = True


class PublicMenuSection(BaseModel):
    category_id: Optional[int]
    category_name: str
    items: List[MenuItemResponse]


# =============================================================================
# TABLES
# =============================================================================

class TableCreate(BaseModel):
    number: int = Field(..., ge=1, examples=[12])
    capacity: int = Field(default=4, ge=1, le=50)


class TableStatusUpdate(BaseModel):
    # Validated by the service so an unknown status is a 400
    status: str = Field(..., examples=["occupied"])


class TableResponse(BaseModel):
    id: int
    restaurant_id: int
    number: int
    capacity: int
    status: str
    is_active: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class TableAvailabilityResponse(BaseModel):
    number: int
    exists: bool
    available: bool
    status: Optional[str] = None


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single item in an order."""
    menu_item_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=100, examples=["Pizza Margherita"])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    unit_price: float = Field(..., gt=0, examples=[14.99])
    notes: Optional[str] = Field(None, max_length=200)


class OrderCreate(BaseModel):
    """Fields shared by every way of placing an order."""
    restaurant_id: Optional[int] = Field(None, description="Required for customers; staff default to their own restaurant")
    items: List[OrderItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=20)
    customer_email: Optional[str] = Field(None, max_length=255)
    redeem_points: int = Field(default=0, ge=0)
    payment_method: Optional[str] = Field(None, examples=["card", "cash"])


class DineInOrderCreate(OrderCreate):
    table_number: int = Field(..., ge=1, examples=[5])


class PickupOrderCreate(OrderCreate):
    pass


class PosOrderCreate(OrderCreate):
    table_number: Optional[int] = Field(None, ge=1)
    customer_id: Optional[int] = None


class OrderItemOut(BaseModel):
    menu_item_id: Optional[int] = None
    name: str
    quantity: int
    unit_price: float
    notes: Optional[str] = None
    status: str = "pending"


ItemList = Annotated[List[OrderItemOut], BeforeValidator(_parse_items)]


class OrderResponse(BaseModel):
    """Response schema for a single order."""
    id: int
    order_number: str
    restaurant_id: int
    user_id: Optional[int]
    table_id: Optional[int]
    order_type: str
    status: str
    items: ItemList
    notes: Optional[str]
    customer_name: Optional[str]
    customer_phone: Optional[str]
    customer_email: Optional[str]
    subtotal: float
    tax: float
    discount: float
    total_amount: float
    currency: str
    payment_status: str
    payment_method: Optional[str]
    points_earned: int
    points_redeemed: int
    pickup_code: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    page: int
    limit: int
    orders: List[OrderResponse]


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., examples=["preparing"])


class PickupVerifyRequest(BaseModel):
    pickup_code: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class OrderStatsResponse(BaseModel):
    today_orders: int
    today_revenue: float
    open_orders: int
    occupied_tables: int
    available_tables: int


# =============================================================================
# KITCHEN
# =============================================================================

class KitchenAssignRequest(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    staff_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


class KitchenOrderResponse(BaseModel):
    id: int
    order_id: int
    order_number: str
    order_type: str
    table_number: Optional[int]
    restaurant_id: int
    staff_id: Optional[int]
    assigned_by: int
    status: str
    items: ItemList
    notes: Optional[str]
    assigned_at: datetime
    started_at: Optional[datetime]
    ready_at: Optional[datetime]
    completed_at: Optional[datetime]

    class Config:
        from_attributes = True


class KitchenStatusUpdate(BaseModel):
    status: str = Field(..., examples=["ready"])


class ItemStatusUpdate(BaseModel):
    item_index: int = Field(..., examples=[0])
    status: str = Field(..., examples=["fulfilled"])


# =============================================================================
# SETTINGS & TEMPLATES
# =============================================================================

class SettingUpsert(BaseModel):
    key: str = Field(..., min_length=1, max_length=100, examples=["OTP_EMAIL_ENABLED"])
    value: str = Field(..., examples=["true"])
    description: Optional[str] = None
    category: str = Field(default="general", max_length=50)
    is_public: bool = False


class SettingResponse(BaseModel):
    id: int
    key: str
    value: str
    description: Optional[str]
    category: str
    is_public: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class LoyaltySettings(BaseModel):
    """Loyalty program configuration, stored as JSON under the ``loyalty`` key."""
    enabled: bool = False
    earnRate: float = Field(default=1, ge=0)
    redeemRate: int = Field(default=100, gt=0)
    redeemValue: float = Field(default=5, ge=0)
    minRedeemPoints: int = Field(default=100, ge=0)
    pointExpiryDays: int = Field(default=365, gt=0)


class EmailTemplateUpsert(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)


class EmailTemplateResponse(BaseModel):
    id: int
    name: str
    subject: str
    body: str
    updated_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# LOYALTY
# =============================================================================

class LoyaltyBalanceResponse(BaseModel):
    user_id: int
    enabled: bool
    balance: int
    redeem_value_per_point: float


class LoyaltyEntryResponse(BaseModel):
    id: int
    order_id: Optional[int]
    points: int
    type: str
    description: Optional[str]
    expires_at: datetime
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# FEEDBACK & REVIEWS
# =============================================================================

class FeedbackCreate(BaseModel):
    """Rate one or more lines of a completed order with the same score."""
    item_indexes: List[int] = Field(..., min_length=1, examples=[[0, 2]])
    rating: int = Field(..., ge=1, le=5, examples=[5])
    comment: Optional[str] = Field(None, max_length=1000)
    reviewer_name: Optional[str] = Field(None, max_length=100)


class ReviewResponse(BaseModel):
    id: int
    order_id: int
    item_index: int
    menu_item_id: Optional[int]
    item_name: str
    user_id: Optional[int]
    reviewer_name: Optional[str]
    rating: int
    comment: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class FeedbackFormResponse(BaseModel):
    """What the feedback page needs: the order lines and what is already rated."""
    order_number: str
    restaurant_id: int
    status: str
    items: ItemList
    reviews: List[ReviewResponse]


class ReviewListResponse(BaseModel):
    total: int
    page: int
    limit: int
    average_rating: Optional[float]
    reviews: List[ReviewResponse]


# =============================================================================
# SUPPORT
# =============================================================================

class ComplaintCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, examples=["food_quality"])
    subject: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=5)
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    restaurant_id: Optional[int] = None
    order_id: Optional[int] = None


class ComplaintUpdate(BaseModel):
    status: Optional[ComplaintStatus] = None
    priority: Optional[ComplaintPriority] = None
    assigned_to: Optional[int] = None


class ComplaintReplyCreate(BaseModel):
    message: str = Field(..., min_length=1)
    is_internal: bool = False


class ComplaintReplyResponse(BaseModel):
    id: int
    complaint_id: int
    user_id: int
    message: str
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ComplaintResponse(BaseModel):
    id: int
    user_id: int
    restaurant_id: Optional[int]
    order_id: Optional[int]
    type: str
    subject: str
    description: str
    priority: str
    status: str
    assigned_to: Optional[int]
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime]

    class Config:
        from_attributes = True


class ComplaintDetailResponse(ComplaintResponse):
    responses: List[ComplaintReplyResponse] = []


class ComplaintListResponse(BaseModel):
    total: int
    page: int
    limit: int
    complaints: List[ComplaintResponse]


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# HR & PAYROLL
# =============================================================================

class EmployeeCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    position: str = Field(..., min_length=1, max_length=100, examples=["Line Cook"])
    department: Optional[str] = Field(None, max_length=100)
    hire_date: date
    base_salary: float = Field(default=0.0, ge=0)
    user_id: Optional[int] = None


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    base_salary: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class EmployeeResponse(BaseModel):
    id: int
    restaurant_id: int
    user_id: Optional[int]
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]
    position: str
    department: Optional[str]
    hire_date: date
    base_salary: float
    is_active: bool

    class Config:
        from_attributes = True


class AttendanceCreate(BaseModel):
    employee_id: int
    date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_times(self):
        if self.check_in and self.check_out and self.check_out < self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class AttendanceResponse(BaseModel):
    id: int
    employee_id: int
    date: date
    check_in: Optional[datetime]
    check_out: Optional[datetime]
    status: str
    notes: Optional[str]
    month: int
    year: int

    class Config:
        from_attributes = True


class AttendanceSummary(BaseModel):
    employee_id: int
    employee_name: str
    present: int = 0
    absent: int = 0
    late: int = 0
    half_day: int = 0
    on_leave: int = 0
    total: int = 0


class LeaveCreate(BaseModel):
    employee_id: int
    leave_type: str = Field(..., min_length=1, max_length=50, examples=["sick"])
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class LeaveReview(BaseModel):
    status: str = Field(..., pattern="^(approved|rejected)$")


class LeaveResponse(BaseModel):
    id: int
    employee_id: int
    leave_type: str
    start_date: date
    end_date: date
    reason: Optional[str]
    status: str
    reviewed_by: Optional[int]
    reviewed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class PayrollCreate(BaseModel):
    employee_id: int
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    base_salary: Optional[float] = Field(None, ge=0, description="Defaults to the employee's base salary")
    overtime_pay: float = Field(default=0.0, ge=0)
    tips_amount: float = Field(default=0.0, ge=0)
    deductions: float = Field(default=0.0, ge=0)
    notes: Optional[str] = None


class PayrollResponse(BaseModel):
    id: int
    employee_id: int
    month: int
    year: int
    base_salary: float
    overtime_pay: float
    tips_amount: float
    deductions: float
    net_salary: float
    status: str
    payment_date: Optional[date]
    notes: Optional[str]

    class Config:
        from_attributes = True


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentRequest(BaseModel):
    payment_method: str = Field(default="card", examples=["card"])


class PaymentResponse(BaseModel):
    success: bool
    order_id: int
    payment_status: str
    payment_intent_id: Optional[str] = None
    amount: float
    error_message: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    success: bool
    order_id: int
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: float
    currency: str
    error_message: Optional[str] = None


# =============================================================================
# REPORTS & HEALTH
# =============================================================================

class DashboardResponse(BaseModel):
    total_orders: int
    open_orders: int
    completed_orders: int
    cancelled_orders: int
    today_orders: int
    today_revenue: float
    avg_order_value: float
    tables_total: int
    tables_occupied: int
    occupancy_rate: float
    recent_orders: List[OrderResponse]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    payment_service: str
    geo_service: str
    notification_service: str
    realtime_connections: int
    timestamp: datetime

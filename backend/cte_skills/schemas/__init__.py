from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from .admin import (
    AdminCustomer,
    AdminCustomersResponse,
    AdminOverview,
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    OrderListResponse,
    OrderRecord,
    RefundRequest,
    RefundResponse,
)
from .billing import CheckoutPlan, CheckoutRequest, CheckoutResponse, PortalResponse
from .subscriptions import CheckSubscriptionResponse, SyncSubscriptionResponse


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthRegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    full_name: str = Field(min_length=1, max_length=200)


class Me(BaseModel):
    user_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_admin: bool = False
    stripe_customer_id: Optional[str] = None


__all__ = [
    "AdminCustomer",
    "AdminCustomersResponse",
    "AdminOverview",
    "AuthLoginRequest",
    "AuthRegisterRequest",
    "CancelSubscriptionRequest",
    "CancelSubscriptionResponse",
    "CheckSubscriptionResponse",
    "CheckoutPlan",
    "CheckoutRequest",
    "CheckoutResponse",
    "Me",
    "OrderListResponse",
    "OrderRecord",
    "PortalResponse",
    "RefundRequest",
    "RefundResponse",
    "SyncSubscriptionResponse",
    "Token",
]

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CustomerCharge(BaseModel):
    id: str
    amount: int
    currency: Optional[str] = None
    status: Optional[str] = None
    refunded: bool = False
    payment_intent: Optional[str] = None
    created: Optional[int] = None


class CustomerSubscription(BaseModel):
    id: str
    status: Optional[str] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False


class AdminCustomer(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created: Optional[int] = None
    subscription: Optional[CustomerSubscription] = None
    charges: list[CustomerCharge] = Field(default_factory=list)


class AdminCustomersRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    email: Optional[str] = None


class AdminCustomersResponse(BaseModel):
    customers: list[AdminCustomer]


class RefundRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_intent_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("paymentIntentId", "payment_intent_id"),
    )
    amount: Optional[int] = Field(default=None, gt=0)


class RefundRecord(BaseModel):
    id: str
    amount: int
    currency: Optional[str] = None
    status: Optional[str] = None
    payment_intent: Optional[str] = None


class RefundResponse(BaseModel):
    refund: RefundRecord


class CancelSubscriptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subscription_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("subscriptionId", "subscription_id"),
    )
    immediately: bool = False


class CancelledSubscription(BaseModel):
    id: str
    status: Optional[str] = None
    cancel_at_period_end: bool = False
    current_period_end: Optional[str] = None


class CancelSubscriptionResponse(BaseModel):
    subscription: CancelledSubscription


class OrderRecord(BaseModel):
    id: str
    user_id: Optional[str] = None
    stripe_checkout_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    amount: int
    currency: str
    status: str
    refunded: bool = False
    refund_amount: int = 0
    product_name: Optional[str] = None
    created_at: Optional[datetime] = None


class OrderListResponse(BaseModel):
    items: list[OrderRecord]


class AdminOverview(BaseModel):
    videos: int = 0
    pathways: int = 0
    categories: int = 0
    orders: int = 0
    active_subscriptions: int = 0

from typing import Optional

from pydantic import BaseModel


class CheckSubscriptionResponse(BaseModel):
    subscribed: bool
    subscription_status: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    price_id: Optional[str] = None
    subscription_end: Optional[str] = None
    subscription_end_unix: Optional[int] = None
    stripe_customer_id: Optional[str] = None


class SyncSubscriptionResponse(BaseModel):
    synced: bool
    message: str
    subscription_id: Optional[str] = None

from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CheckoutPlan(str, Enum):
    monthly = "monthly"
    annual = "annual"


class CheckoutRequest(BaseModel):
    plan: CheckoutPlan = Field(
        default=CheckoutPlan.monthly,
        validation_alias=AliasChoices("plan", "interval"),
    )

    @field_validator("plan", mode="before")
    @classmethod
    def _normalize_plan(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"monthly", "month"}:
                return CheckoutPlan.monthly
            if lowered in {"annual", "yearly", "year"}:
                return CheckoutPlan.annual
        return value


class CheckoutResponse(BaseModel):
    url: str
    session_id: str | None = None


class PortalResponse(BaseModel):
    url: str

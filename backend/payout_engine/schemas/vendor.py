"""Vendor schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from payout_engine.models.vendor import PayoutScheduleType


class VendorCreate(BaseModel):
    id: str = Field(min_length=1, max_length=128)
    display_name: str | None = Field(default=None, max_length=255)
    username: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    currency: str = Field(default="NGN", min_length=3, max_length=3)
    payout_schedule: PayoutScheduleType = PayoutScheduleType.WEEKLY


class VendorUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=255)
    username: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class BankDetails(BaseModel):
    bank_name: str = Field(max_length=255)
    bank_code: str = Field(min_length=1, max_length=32)
    account_number: str = Field(min_length=6, max_length=32)
    account_name: str = Field(max_length=255)
    is_verified: bool = False
    transfer_recipient_code: str | None = None


class PayoutScheduleUpdate(BaseModel):
    schedule: PayoutScheduleType


class VendorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: str | None = None
    username: str | None = None
    email: str | None = None
    currency: str
    bank_name: str | None = None
    account_name: str | None = None
    bank_verified: bool
    payout_schedule: str
    eligible_balance_minor: int
    on_hold_minor: int
    last_payout_at: datetime | None = None
    created_at: datetime | None = None

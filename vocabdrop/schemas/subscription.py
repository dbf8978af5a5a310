import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

PHONE_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class TrialSignupRequest(BaseModel):
    phone_number: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    delivery_time: str
    category: Optional[str] = Field(None, max_length=50)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        v = v.replace(" ", "")
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be in E.164 format, e.g. +919876543210")
        return v

    @field_validator("delivery_time")
    @classmethod
    def validate_delivery_time(cls, v: str) -> str:
        if not TIME_PATTERN.match(v):
            raise ValueError("Delivery time must be HH:MM")
        return v


class SubscriptionResponse(BaseModel):
    id: int
    phone_number: str
    user_id: Optional[str]
    first_name: Optional[str]
    is_pro: bool
    trial_ends_at: Optional[datetime] = None
    subscription_ends_at: Optional[datetime] = None
    subscription_status: str
    category: Optional[str]
    delivery_time: Optional[str]

    class Config:
        from_attributes = True

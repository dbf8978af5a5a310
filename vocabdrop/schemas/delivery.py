import re
from datetime import datetime
from enum import Enum
from typing import Optional

import pytz
from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DeliveryMode(str, Enum):
    AUTO = "auto"
    CUSTOM = "custom"


class DeliverySettingsUpdate(BaseModel):
    words_per_day: int = Field(..., ge=1, le=5)
    mode: DeliveryMode
    custom_times: list[str] = Field(default_factory=list)
    timezone: Optional[str] = None

    @field_validator("custom_times")
    @classmethod
    def validate_custom_times(cls, v: list[str]) -> list[str]:
        for value in v:
            if not TIME_PATTERN.match(value):
                raise ValueError(f"Invalid time {value!r}, expected HH:MM")
        if len(set(v)) != len(v):
            raise ValueError("Custom times must be distinct")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is not None and v not in pytz.all_timezones:
            raise ValueError(f"Invalid timezone: {v}")
        return v

    @model_validator(mode="after")
    def validate_custom_count(self):
        if len(self.custom_times) > self.words_per_day:
            raise ValueError("Number of custom times cannot exceed words_per_day")
        if self.mode == DeliveryMode.CUSTOM and not self.custom_times:
            raise ValueError("Custom mode requires at least one custom time")
        return self


class CustomTimeResponse(BaseModel):
    position: int
    time: str

    class Config:
        from_attributes = True


class DeliverySettingsResponse(BaseModel):
    user_id: str
    mode: str
    words_per_day: int
    timezone: str
    custom_times: list[CustomTimeResponse] = []

    class Config:
        from_attributes = True


class ScheduledSlot(BaseModel):
    position: int
    time: str  # Local "HH:MM"
    send_at: datetime  # UTC
    timezone: str


class DeliverySettingsWithSchedule(BaseModel):
    settings: DeliverySettingsResponse
    today_schedule: list[ScheduledSlot]

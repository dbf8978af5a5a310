from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class ScheduleResult(BaseModel):
    """Outcome of scheduling one subscription."""

    subscription_id: int
    phone: str
    status: str  # "scheduled", "partial", "failed", "skipped"
    messages_count: int = 0
    delivery_times: list[str] = Field(default_factory=list)
    words: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class ScheduleRunSummary(BaseModel):
    success: bool = True
    date: date
    total_subscriptions: int = 0
    scheduled: int = 0
    partial: int = 0
    failed: int = 0
    skipped: int = 0
    already_scheduled: int = 0
    messages_inserted: int = 0
    success_rate: float = 1.0
    low_success: bool = False
    results: list[ScheduleResult] = Field(default_factory=list)


class ProcessResult(BaseModel):
    """Outcome of one outbox row."""

    message_id: int
    phone: str
    status: str  # "sent", "failed", "expired", "requeued", "skipped"
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class ProcessRunSummary(BaseModel):
    success: bool = True
    processed_messages: int = Field(0, serialization_alias="processedMessages")
    sent: int = 0
    failed: int = 0
    expired: int = 0
    requeued: int = 0
    skipped: int = 0
    reclaimed: int = 0
    results: list[ProcessResult] = Field(default_factory=list)
    timestamp: datetime


class JobErrorResponse(BaseModel):
    success: bool = False
    error: str
    timestamp: datetime

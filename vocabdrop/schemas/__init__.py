from vocabdrop.schemas.delivery import (
    DeliveryMode,
    DeliverySettingsResponse,
    DeliverySettingsUpdate,
    DeliverySettingsWithSchedule,
    ScheduledSlot,
)
from vocabdrop.schemas.jobs import (
    JobErrorResponse,
    ProcessResult,
    ProcessRunSummary,
    ScheduleResult,
    ScheduleRunSummary,
)
from vocabdrop.schemas.subscription import SubscriptionResponse, TrialSignupRequest

__all__ = [
    "DeliveryMode",
    "DeliverySettingsResponse",
    "DeliverySettingsUpdate",
    "DeliverySettingsWithSchedule",
    "ScheduledSlot",
    "JobErrorResponse",
    "ProcessResult",
    "ProcessRunSummary",
    "ScheduleResult",
    "ScheduleRunSummary",
    "SubscriptionResponse",
    "TrialSignupRequest",
]

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from vocabdrop.config import settings
from vocabdrop.models.delivery_settings import CustomTime, DeliverySettings
from vocabdrop.schemas.delivery import DeliverySettingsUpdate, ScheduledSlot
from vocabdrop.services.delivery_times import (
    format_time,
    generate_delivery_times,
    local_date,
    resolve_custom_times,
    to_utc,
)

logger = logging.getLogger(__name__)


def get_delivery_settings(db: Session, user_id: str) -> Optional[DeliverySettings]:
    return db.get(DeliverySettings, user_id)


def save_delivery_settings(
    db: Session, user_id: str, update: DeliverySettingsUpdate
) -> DeliverySettings:
    """Create or replace a user's delivery settings."""
    delivery_settings = db.get(DeliverySettings, user_id)
    if delivery_settings is None:
        delivery_settings = DeliverySettings(user_id=user_id)
        db.add(delivery_settings)

    delivery_settings.words_per_day = update.words_per_day
    delivery_settings.mode = update.mode.value
    delivery_settings.timezone = update.timezone or settings.default_timezone

    delivery_settings.custom_times.clear()
    db.flush()
    if update.mode.value == "custom":
        for position, value in enumerate(update.custom_times[: update.words_per_day], start=1):
            delivery_settings.custom_times.append(
                CustomTime(user_id=user_id, position=position, time=value)
            )

    db.commit()
    db.refresh(delivery_settings)
    logger.info(f"Saved delivery settings for user {user_id}")
    return delivery_settings


def preview_today(
    delivery_settings: DeliverySettings, preferred_time: Optional[str], now: datetime
) -> list[ScheduledSlot]:
    """Today's slots for the settings, as they would be scheduled."""
    if delivery_settings.mode == "custom" and delivery_settings.custom_times:
        slots = resolve_custom_times(
            [ct.time for ct in delivery_settings.custom_times], delivery_settings.words_per_day
        )
    else:
        slots = generate_delivery_times(preferred_time, delivery_settings.words_per_day)

    tz_name = delivery_settings.timezone
    day = local_date(now, tz_name)
    return [
        ScheduledSlot(
            position=position,
            time=format_time(slot),
            send_at=to_utc(day, slot, tz_name),
            timezone=tz_name,
        )
        for position, slot in enumerate(slots, start=1)
    ]

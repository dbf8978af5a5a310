import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from vocabdrop.clock import Clock, utc_now
from vocabdrop.config import settings
from vocabdrop.models.delivery_settings import DeliverySettings
from vocabdrop.models.outbox_message import STATUS_QUEUED, OutboxMessage
from vocabdrop.models.subscription import Subscription
from vocabdrop.schemas.jobs import ScheduleResult, ScheduleRunSummary
from vocabdrop.services.delivery_times import (
    clamp_words_per_day,
    format_time,
    generate_delivery_times,
    local_date,
    local_day_bounds,
    resolve_custom_times,
    to_utc,
)
from vocabdrop.services.email import email_service
from vocabdrop.services.entitlement import entitled_filter
from vocabdrop.services.vocabulary import select_words
from vocabdrop.services.word_generator import WordGenerator

logger = logging.getLogger(__name__)

SOURCE_TAG = "daily-scheduler"


def get_or_create_delivery_settings(db: Session, user_id: str) -> DeliverySettings:
    """Load a user's delivery settings, creating the defaults on first use."""
    delivery_settings = db.get(DeliverySettings, user_id)
    if delivery_settings is not None:
        return delivery_settings

    delivery_settings = DeliverySettings(
        user_id=user_id,
        mode="auto",
        words_per_day=settings.default_words_per_day,
        timezone=settings.default_timezone,
        auto_window_start="09:00:00",
        auto_window_end="21:00:00",
    )
    db.add(delivery_settings)
    db.flush()
    logger.info(f"Created default delivery settings for user {user_id}")
    return delivery_settings


def already_scheduled(db: Session, phone: str, start: datetime, end: datetime) -> bool:
    """True if the phone has any row between the UTC bounds of its local day."""
    existing = (
        db.query(OutboxMessage.id)
        .filter(
            OutboxMessage.phone == phone,
            OutboxMessage.send_at >= start,
            OutboxMessage.send_at < end,
        )
        .first()
    )
    return existing is not None


def slot_times(delivery_settings: DeliverySettings, subscription: Subscription) -> list[time]:
    words_per_day = clamp_words_per_day(delivery_settings.words_per_day)
    if delivery_settings.mode == "custom" and delivery_settings.custom_times:
        return resolve_custom_times(
            [ct.time for ct in delivery_settings.custom_times], words_per_day
        )
    return generate_delivery_times(subscription.delivery_time, words_per_day)


def send_instants(day: date, slots: list[time], tz_name: str) -> list[datetime]:
    """Absolute send times for the day's slots, strictly increasing."""
    instants: list[datetime] = []
    for slot in slots:
        instant = to_utc(day, slot, tz_name)
        # DST gaps can fold two local slots onto one instant
        if instants and instant <= instants[-1]:
            instant = instants[-1] + timedelta(minutes=1)
        instants.append(instant)
    return instants


def _insert_outbox_row(db: Session, message: OutboxMessage) -> None:
    with db.begin_nested():
        db.add(message)


def schedule_subscription(
    db: Session,
    subscription: Subscription,
    now: datetime,
    generator: Optional[WordGenerator] = None,
) -> Optional[ScheduleResult]:
    """
    Create today's outbox rows for a single subscription.

    Returns None when the subscription already has rows for its current day.
    """
    if not subscription.user_id:
        logger.debug(f"Skipping subscription {subscription.id}: no owning user id")
        return ScheduleResult(
            subscription_id=subscription.id,
            phone=subscription.phone_number,
            status="skipped",
            error="Subscription has no owning user id",
        )

    delivery_settings = get_or_create_delivery_settings(db, subscription.user_id)
    tz_name = delivery_settings.timezone or settings.default_timezone

    day_start, day_end = local_day_bounds(now, tz_name)
    if already_scheduled(db, subscription.phone_number, day_start, day_end):
        logger.debug(f"Already scheduled for subscription {subscription.id}")
        return None

    slots = slot_times(delivery_settings, subscription)
    category = subscription.category or settings.default_category
    words_per_day = len(slots)

    logger.info(
        f"Scheduling {words_per_day} words for {subscription.phone_number} at times: "
        f"{[format_time(s) for s in slots]}"
    )

    words = select_words(db, subscription.user_id, category, words_per_day, now, generator)
    if not words:
        logger.warning(f"No words available for category {category} for {subscription.phone_number}")
        return ScheduleResult(
            subscription_id=subscription.id,
            phone=subscription.phone_number,
            status="failed",
            error=f"No words available for category {category}",
        )

    day = local_date(now, tz_name)
    instants = send_instants(day, slots[: len(words)], tz_name)
    total = len(instants)

    inserted_times: list[str] = []
    inserted_words: list[str] = []
    errors: list[str] = []
    for position, (word, send_at) in enumerate(zip(words, instants), start=1):
        message = OutboxMessage(
            user_id=subscription.user_id,
            phone=subscription.phone_number,
            send_at=send_at,
            status=STATUS_QUEUED,
            template=settings.whatsapp_template_name,
            source=SOURCE_TAG,
            retries=0,
            variables={
                "word": word.word,
                "definition": word.definition,
                "example": word.example,
                "pronunciation": word.pronunciation or "",
                "part_of_speech": word.part_of_speech or "Unknown",
                "memory_hook": word.memory_hook or "Remember this word!",
                "category": category,
                "position": position,
                "totalWords": total,
                "word_id": word.id,
                "firstName": subscription.first_name or "Friend",
                "timezone": tz_name,
            },
        )
        try:
            _insert_outbox_row(db, message)
        except Exception as e:
            logger.error(
                f"Error inserting message {position} for {subscription.phone_number}: {e}"
            )
            errors.append(str(e))
            continue
        inserted_times.append(format_time(slots[position - 1]))
        inserted_words.append(word.word)

    inserted = len(inserted_times)
    if inserted == words_per_day:
        status = "scheduled"
    elif inserted > 0:
        status = "partial"
    else:
        status = "failed"

    error = None
    if len(words) < words_per_day:
        error = f"Only {len(words)} of {words_per_day} words available"
    if errors:
        error = "; ".join(([error] if error else []) + errors)

    logger.info(f"Scheduled {inserted} messages for {subscription.phone_number}")

    return ScheduleResult(
        subscription_id=subscription.id,
        phone=subscription.phone_number,
        status=status,
        messages_count=inserted,
        delivery_times=inserted_times,
        words=inserted_words,
        error=error,
    )


def run_daily_schedule(
    db: Session,
    clock: Clock = utc_now,
    generator: Optional[WordGenerator] = None,
    notify: bool = True,
) -> ScheduleRunSummary:
    """
    Schedule today's words for every entitled subscription.
    Safe to re-run: subscriptions with rows for the day are left alone.
    """
    now = clock()
    logger.info(f"Daily scheduler started at {now.isoformat()}")

    subscriptions = (
        db.query(Subscription)
        .filter(entitled_filter(now))
        .order_by(Subscription.id)
        .all()
    )
    logger.info(f"Found {len(subscriptions)} active subscriptions")

    summary = ScheduleRunSummary(
        date=local_date(now, settings.schedule_timezone),
        total_subscriptions=len(subscriptions),
    )

    for subscription in subscriptions:
        subscription_id, phone = subscription.id, subscription.phone_number
        try:
            result = schedule_subscription(db, subscription, now, generator)
            db.commit()
        except Exception as e:
            logger.error(f"Error processing subscription {subscription_id}: {e}")
            db.rollback()
            result = ScheduleResult(
                subscription_id=subscription_id,
                phone=phone,
                status="failed",
                error=str(e),
            )

        if result is None:
            summary.already_scheduled += 1
            continue

        summary.results.append(result)
        summary.messages_inserted += result.messages_count
        if result.status == "scheduled":
            summary.scheduled += 1
        elif result.status == "partial":
            summary.partial += 1
        elif result.status == "failed":
            summary.failed += 1
        else:
            summary.skipped += 1

    attempted = summary.scheduled + summary.partial + summary.failed
    if attempted:
        summary.success_rate = summary.scheduled / attempted
    summary.low_success = attempted > 0 and summary.success_rate < settings.schedule_success_threshold

    if summary.low_success:
        logger.warning(
            f"Only {summary.success_rate:.0%} of subscriptions fully scheduled for {summary.date}"
        )

    logger.info(
        f"Daily scheduler completed: {summary.scheduled} scheduled, {summary.partial} partial, "
        f"{summary.failed} failed, {summary.messages_inserted} messages"
    )

    if notify:
        try:
            email_service.send_scheduler_report(summary)
        except Exception as e:
            logger.error(f"Failed to send scheduler report: {e}")

    return summary

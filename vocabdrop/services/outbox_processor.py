import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from vocabdrop.clock import Clock, utc_now
from vocabdrop.config import settings
from vocabdrop.models.outbox_message import (
    STATUS_FAILED,
    STATUS_QUEUED,
    STATUS_SENDING,
    STATUS_SENT,
    OutboxMessage,
)
from vocabdrop.models.subscription import Subscription
from vocabdrop.models.word_history import WordHistory
from vocabdrop.schemas.jobs import ProcessResult, ProcessRunSummary
from vocabdrop.services.entitlement import is_entitled
from vocabdrop.services.message_format import render_word_message, template_parameters
from vocabdrop.services.whatsapp import WhatsAppService, whatsapp_service

logger = logging.getLogger(__name__)

SOURCE_TAG = "outbox-processor"
EXPIRED_REASON = "subscription expired"


def _transition(db: Session, message_id: int, from_status: str, values: dict) -> bool:
    """Move a row out of `from_status`; False if another run got there first."""
    updated = (
        db.query(OutboxMessage)
        .filter(OutboxMessage.id == message_id, OutboxMessage.status == from_status)
        .update(values, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def claim_message(db: Session, message_id: int, now: datetime) -> bool:
    """Atomically mark a queued row as sending."""
    return _transition(
        db, message_id, STATUS_QUEUED, {"status": STATUS_SENDING, "updated_at": now}
    )


def reclaim_stale_sending(db: Session, now: datetime) -> int:
    """Return rows stuck in "sending" to the queue once they pass the timeout."""
    timeout = settings.outbox_sending_timeout_minutes
    if timeout <= 0:
        return 0

    cutoff = now - timedelta(minutes=timeout)
    reclaimed = (
        db.query(OutboxMessage)
        .filter(OutboxMessage.status == STATUS_SENDING, OutboxMessage.updated_at < cutoff)
        .update({"status": STATUS_QUEUED, "updated_at": now}, synchronize_session=False)
    )
    db.commit()
    if reclaimed:
        logger.warning(f"Reclaimed {reclaimed} messages stuck in sending")
    return reclaimed


def fetch_due_messages(db: Session, now: datetime, limit: int) -> list[OutboxMessage]:
    return (
        db.query(OutboxMessage)
        .filter(OutboxMessage.status == STATUS_QUEUED, OutboxMessage.send_at <= now)
        .order_by(OutboxMessage.send_at, OutboxMessage.id)
        .limit(limit)
        .all()
    )


def send_message(
    message: OutboxMessage, now: datetime, sender: WhatsAppService
) -> tuple[bool, Optional[str], Optional[str]]:
    variables = message.variables or {}
    if settings.whatsapp_message_mode == "template":
        return sender.send_template(
            message.phone,
            message.template,
            settings.whatsapp_template_language,
            template_parameters(variables),
        )
    return sender.send_text(message.phone, render_word_message(variables, now))


def record_word_history(db: Session, message: OutboxMessage, now: datetime) -> bool:
    """Append the delivered word to the user's history. Best-effort."""
    variables = message.variables or {}
    if not message.user_id or not variables.get("word"):
        return False

    try:
        db.add(
            WordHistory(
                user_id=message.user_id,
                word_id=variables.get("word_id"),
                word=variables["word"],
                category=variables.get("category") or settings.default_category,
                date_sent=now,
                source=message.source or SOURCE_TAG,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record word history for message {message.id}: {e}")
        return False
    return True


def _handle_send_failure(
    db: Session, message: OutboxMessage, now: datetime, error: Optional[str]
) -> ProcessResult:
    message_id, phone, retries = message.id, message.phone, message.retries or 0
    error = error or "Unknown error"

    if retries < settings.outbox_max_retries:
        delay = timedelta(minutes=settings.retry_backoff_base_minutes * 2**retries)
        _transition(
            db,
            message_id,
            STATUS_SENDING,
            {
                "status": STATUS_QUEUED,
                "retries": retries + 1,
                "send_at": now + delay,
                "last_error": error,
                "updated_at": now,
            },
        )
        logger.warning(f"Send failed for message {message_id}, retrying in {delay}: {error}")
        return ProcessResult(message_id=message_id, phone=phone, status="requeued", error=error)

    _transition(
        db,
        message_id,
        STATUS_SENDING,
        {
            "status": STATUS_FAILED,
            "retries": retries + 1,
            "last_error": error,
            "updated_at": now,
        },
    )
    logger.error(f"Failed to send message {message_id}: {error}")
    return ProcessResult(message_id=message_id, phone=phone, status="failed", error=error)


def process_message(
    db: Session, message: OutboxMessage, now: datetime, sender: WhatsAppService
) -> ProcessResult:
    """Deliver a single due row."""
    message_id, phone = message.id, message.phone

    subscription = (
        db.query(Subscription)
        .filter(Subscription.phone_number == phone)
        .populate_existing()
        .first()
    )

    if not is_entitled(subscription, now):
        expired = _transition(
            db,
            message_id,
            STATUS_QUEUED,
            {"status": STATUS_FAILED, "last_error": EXPIRED_REASON, "updated_at": now},
        )
        if not expired:
            return ProcessResult(
                message_id=message_id, phone=phone, status="skipped", error="already claimed"
            )
        logger.info(f"Message {message_id} not sent: {EXPIRED_REASON}")
        return ProcessResult(
            message_id=message_id, phone=phone, status="expired", error=EXPIRED_REASON
        )

    if not claim_message(db, message_id, now):
        logger.debug(f"Message {message_id} claimed by another run")
        return ProcessResult(
            message_id=message_id, phone=phone, status="skipped", error="already claimed"
        )

    try:
        success, provider_message_id, error = send_message(message, now, sender)
    except Exception as e:
        success, provider_message_id, error = False, None, str(e)

    if not success:
        return _handle_send_failure(db, message, now, error)

    _transition(
        db,
        message_id,
        STATUS_SENDING,
        {
            "status": STATUS_SENT,
            "sent_at": now,
            "provider_message_id": provider_message_id,
            "last_error": None,
            "updated_at": now,
        },
    )
    logger.info(f"Successfully sent message {message_id} to {phone}")

    if subscription is not None:
        subscription.last_sent_at = now
        subscription.last_word_sent_id = (message.variables or {}).get("word_id")
        try:
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update delivery tracking for {phone}: {e}")

    record_word_history(db, message, now)

    return ProcessResult(
        message_id=message_id,
        phone=phone,
        status="sent",
        provider_message_id=provider_message_id,
    )


def process_outbox(
    db: Session,
    clock: Clock = utc_now,
    sender: Optional[WhatsAppService] = None,
    batch_size: Optional[int] = None,
) -> ProcessRunSummary:
    """
    Send every queued row whose send time has passed.

    Rows are claimed one at a time, so a crash part-way through leaves the
    remaining rows queued for the next run.
    """
    now = clock()
    sender = sender or whatsapp_service
    limit = batch_size or settings.outbox_batch_size

    logger.info(f"Outbox processor started for {now.isoformat()}")

    summary = ProcessRunSummary(timestamp=now)
    summary.reclaimed = reclaim_stale_sending(db, now)

    messages = fetch_due_messages(db, now, limit)
    if not messages:
        logger.info("No messages to process")
        return summary

    logger.info(f"Found {len(messages)} messages to process")

    for message in messages:
        message_id, phone = message.id, message.phone
        try:
            result = process_message(db, message, now, sender)
        except Exception as e:
            db.rollback()
            logger.error(f"Error processing message {message_id}: {e}")
            result = ProcessResult(message_id=message_id, phone=phone, status="skipped", error=str(e))

        summary.results.append(result)
        if result.status == "sent":
            summary.sent += 1
        elif result.status == "failed":
            summary.failed += 1
        elif result.status == "expired":
            summary.expired += 1
        elif result.status == "requeued":
            summary.requeued += 1
        else:
            summary.skipped += 1

    summary.processed_messages = len(summary.results)
    logger.info(
        f"Outbox processor completed: {summary.sent} sent, {summary.failed} failed, "
        f"{summary.expired} expired"
    )
    return summary

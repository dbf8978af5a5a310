"""Subscription lifecycle: trial signup, upgrades and payment webhook events."""

import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from vocabdrop.config import settings
from vocabdrop.models.subscription import Subscription

logger = logging.getLogger(__name__)


class SubscriptionExistsError(Exception):
    """A subscription already exists for the phone number."""


class SubscriptionNotFoundError(Exception):
    """No subscription exists for the phone number."""


class InvalidSignatureError(Exception):
    """Webhook signature did not match the payload."""


class InvalidPayloadError(Exception):
    """Webhook body is not a well-formed event."""


def get_by_phone(db: Session, phone_number: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.phone_number == phone_number).first()


def start_trial(
    db: Session,
    phone_number: str,
    first_name: str,
    delivery_time: str,
    now: datetime,
    category: Optional[str] = None,
    last_name: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Subscription:
    """Create a trial subscription. Signups always get an owning user id."""
    if get_by_phone(db, phone_number) is not None:
        raise SubscriptionExistsError(
            "This phone number already has an active subscription."
        )

    subscription = Subscription(
        phone_number=phone_number,
        user_id=user_id or str(uuid.uuid4()),
        first_name=first_name,
        last_name=last_name,
        is_pro=False,
        trial_ends_at=now + timedelta(days=settings.trial_days),
        subscription_status="trial",
        category=category or settings.default_category,
        delivery_time=delivery_time,
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    logger.info(f"Trial subscription created for {phone_number}")
    return subscription


def activate_pro(db: Session, phone_number: str, now: datetime) -> Subscription:
    """Upgrade a subscription to pro for one paid period."""
    subscription = get_by_phone(db, phone_number)
    if subscription is None:
        raise SubscriptionNotFoundError("No trial subscription found for this phone number.")

    subscription.is_pro = True
    subscription.subscription_ends_at = now + timedelta(days=settings.pro_period_days)
    subscription.trial_ends_at = None
    subscription.subscription_status = "active"
    db.commit()
    db.refresh(subscription)
    logger.info(f"Subscription upgraded to pro for {phone_number}")
    return subscription


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: str) -> None:
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not signature or not hmac.compare_digest(expected, signature):
        raise InvalidSignatureError("Invalid webhook signature")


def _object(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidPayloadError(f"{name} must be an object")
    return value


def _from_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidPayloadError(f"Invalid timestamp: {value!r}") from e


def apply_payment_event(db: Session, event: dict, now: datetime) -> Optional[Subscription]:
    """
    Apply a Razorpay subscription webhook event.

    Returns the updated subscription, or None when the event is ignored.
    Raises InvalidPayloadError for a body that is not a well-formed event.
    """
    if not isinstance(event, dict):
        raise InvalidPayloadError("Webhook payload must be an object")
    event_type = event.get("event")
    payload = _object(event.get("payload"), "payload")
    entity = _object(_object(payload.get("subscription"), "subscription").get("entity"), "entity")
    phone_number = _object(entity.get("notes"), "notes").get("phone_number")

    logger.info(f"Razorpay webhook event: {event_type} {entity.get('id')}")

    if not phone_number or not isinstance(phone_number, str):
        logger.warning(f"Webhook event {event_type} has no phone number")
        return None

    subscription = get_by_phone(db, phone_number)
    if subscription is None:
        logger.warning(f"No subscription for {phone_number} ({event_type})")
        return None

    current_end = _from_timestamp(entity.get("current_end"))

    if event_type == "subscription.activated":
        subscription.is_pro = True
        subscription.subscription_ends_at = current_end
        subscription.razorpay_subscription_id = entity.get("id")
        subscription.subscription_status = "active"
    elif event_type == "subscription.charged":
        payment = _object(_object(payload.get("payment"), "payment").get("entity"), "entity")
        base = current_end or now
        subscription.is_pro = True
        subscription.subscription_ends_at = base + timedelta(days=settings.pro_period_days)
        subscription.razorpay_payment_id = payment.get("id")
        subscription.subscription_status = "active"
    elif event_type == "subscription.cancelled":
        # Paid period runs out naturally
        subscription.razorpay_subscription_id = entity.get("id")
        subscription.subscription_status = "cancelled"
    elif event_type == "subscription.completed":
        subscription.is_pro = False
        subscription.subscription_ends_at = now
        subscription.subscription_status = "expired"
    else:
        logger.info(f"Unhandled webhook event: {event_type}")
        return None

    db.commit()
    db.refresh(subscription)
    logger.info(f"Applied {event_type} for {phone_number}")
    return subscription

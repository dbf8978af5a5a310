"""Subscription entitlement.

A subscription may receive words while its trial is running, or while it is
on the pro plan and the paid period has not ended (no end date means the plan
does not expire).
"""

from datetime import datetime

from sqlalchemy import and_, or_

from vocabdrop.models.subscription import Subscription


def is_entitled(subscription: Subscription | None, now: datetime) -> bool:
    if subscription is None:
        return False
    return subscription.is_entitled(now)


def entitled_filter(now: datetime):
    """SQL clause selecting subscriptions that are entitled at `now`."""
    return or_(
        Subscription.trial_ends_at > now,
        and_(
            Subscription.is_pro.is_(True),
            or_(
                Subscription.subscription_ends_at.is_(None),
                Subscription.subscription_ends_at > now,
            ),
        ),
    )

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from vocabdrop.clock import ensure_utc, utc_now
from vocabdrop.db import Base


class Subscription(Base):
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    phone_number = Column(String(20), unique=True, index=True, nullable=False)
    user_id = Column(String(36), nullable=True, index=True)  # NULL = anonymous signup
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)

    # Plan
    is_pro = Column(Boolean, nullable=False, default=False)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    subscription_ends_at = Column(DateTime(timezone=True), nullable=True)  # NULL = indefinite
    subscription_status = Column(String(20), nullable=False, default="trial")

    # Preferences
    category = Column(String(50), nullable=True)
    delivery_time = Column(String(8), nullable=True)  # "HH:MM" local
    level = Column(String(20), nullable=True)

    # Delivery tracking
    last_sent_at = Column(DateTime(timezone=True), nullable=True)
    last_word_sent_id = Column(Integer, nullable=True)

    # Payment references
    razorpay_subscription_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def is_entitled(self, now: datetime) -> bool:
        trial_ends_at = ensure_utc(self.trial_ends_at)
        if trial_ends_at is not None and now < trial_ends_at:
            return True
        if not self.is_pro:
            return False
        subscription_ends_at = ensure_utc(self.subscription_ends_at)
        return subscription_ends_at is None or now < subscription_ends_at

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint

from vocabdrop.clock import utc_now
from vocabdrop.db import Base

STATUS_QUEUED = "queued"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class OutboxMessage(Base):
    """One scheduled word delivery."""

    __tablename__ = "outbox_messages"
    __table_args__ = (UniqueConstraint("phone", "send_at", name="uq_outbox_phone_send_at"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    phone = Column(String(20), nullable=False, index=True)
    send_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_QUEUED, index=True)
    template = Column(String(100), nullable=False, default="vocab_word_delivery")
    variables = Column(JSON, nullable=False, default=dict)
    retries = Column(Integer, nullable=False, default=0)
    source = Column(String(50), nullable=True)  # Run that created the row
    last_error = Column(Text, nullable=True)
    provider_message_id = Column(String(100), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

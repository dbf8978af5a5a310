from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from vocabdrop.clock import utc_now
from vocabdrop.db import Base


class DeliverySettings(Base):
    __tablename__ = "user_delivery_settings"

    user_id = Column(String(36), primary_key=True)
    mode = Column(String(10), nullable=False, default="auto")  # "auto" or "custom"
    words_per_day = Column(Integer, nullable=False, default=3)
    timezone = Column(String(50), nullable=False, default="Asia/Kolkata")
    auto_window_start = Column(String(8), nullable=False, default="09:00:00")
    auto_window_end = Column(String(8), nullable=False, default="21:00:00")
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    custom_times = relationship(
        "CustomTime",
        order_by="CustomTime.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class CustomTime(Base):
    __tablename__ = "user_custom_times"
    __table_args__ = (UniqueConstraint("user_id", "position", name="uq_custom_time_position"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        String(36), ForeignKey("user_delivery_settings.user_id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    time = Column(String(8), nullable=False)  # "HH:MM" local

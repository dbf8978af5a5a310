from sqlalchemy import Column, DateTime, Index, Integer, String

from vocabdrop.clock import utc_now
from vocabdrop.db import Base


class WordHistory(Base):
    """A word that was delivered to a user."""

    __tablename__ = "user_word_history"
    __table_args__ = (
        Index("ix_word_history_user_category_sent", "user_id", "category", "date_sent"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    word_id = Column(Integer, nullable=True)
    word = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False)
    date_sent = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    source = Column(String(50), nullable=True)

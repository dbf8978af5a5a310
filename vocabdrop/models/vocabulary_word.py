from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from vocabdrop.clock import utc_now
from vocabdrop.db import Base


class VocabularyWord(Base):
    __tablename__ = "vocabulary_words"

    id = Column(Integer, primary_key=True, index=True)
    word = Column(String(100), nullable=False, index=True)
    definition = Column(Text, nullable=False)
    example = Column(Text, nullable=False)
    pronunciation = Column(String(100), nullable=True)
    part_of_speech = Column(String(30), nullable=True)
    memory_hook = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    source = Column(String(20), nullable=False, default="curated")  # "curated" or "openai"
    created_at = Column(DateTime(timezone=True), default=utc_now)

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from vocabdrop.config import settings
from vocabdrop.models.vocabulary_word import VocabularyWord
from vocabdrop.models.word_history import WordHistory
from vocabdrop.services.word_generator import WordGenerationError, WordGenerator

logger = logging.getLogger(__name__)


def recent_words(db: Session, user_id: str, category: str, since: datetime) -> set[str]:
    """Words sent to the user in `category` since the given instant."""
    rows = (
        db.query(WordHistory.word)
        .filter(
            WordHistory.user_id == user_id,
            WordHistory.category == category,
            WordHistory.date_sent >= since,
        )
        .all()
    )
    return {word.lower() for (word,) in rows}


def _store_generated_word(db: Session, data: dict, category: str) -> VocabularyWord:
    word = VocabularyWord(
        word=data["word"],
        definition=data["definition"],
        example=data["example"],
        pronunciation=data.get("pronunciation") or None,
        part_of_speech=data.get("part_of_speech") or None,
        memory_hook=data.get("memory_hook") or None,
        category=category,
        source="openai",
    )
    db.add(word)
    db.flush()
    return word


def select_words(
    db: Session,
    user_id: str,
    category: str,
    count: int,
    now: datetime,
    generator: Optional[WordGenerator] = None,
) -> list[VocabularyWord]:
    """
    Pick up to `count` words for a user.

    Words outside the user's history lookback are preferred. Any shortfall is
    requested from the word generator; generated words are added to the pool.
    """
    since = now - timedelta(days=settings.word_history_lookback_days)
    seen = recent_words(db, user_id, category, since)

    candidates = (
        db.query(VocabularyWord)
        .filter(
            VocabularyWord.category == category,
            VocabularyWord.is_active.is_(True),
        )
        .order_by(VocabularyWord.id)
        .all()
    )

    selected: list[VocabularyWord] = []
    taken: set[str] = set()
    for word in candidates:
        key = word.word.lower()
        if key in seen or key in taken:
            continue
        selected.append(word)
        taken.add(key)
        if len(selected) == count:
            return selected

    shortfall = count - len(selected)
    logger.info(
        f"Only {len(selected)} unused words for user {user_id} in {category}, "
        f"generating {shortfall} more"
    )

    try:
        generator = generator or WordGenerator()
        generated = generator.generate(category, shortfall)
    except WordGenerationError as e:
        logger.error(f"Error generating words for {category}: {e}")
        return selected

    for data in generated:
        key = data["word"].lower()
        if key in seen or key in taken:
            continue
        selected.append(_store_generated_word(db, data, category))
        taken.add(key)
        if len(selected) == count:
            break

    return selected

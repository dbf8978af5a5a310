from vocabdrop.models.delivery_settings import CustomTime, DeliverySettings
from vocabdrop.models.outbox_message import OutboxMessage
from vocabdrop.models.subscription import Subscription
from vocabdrop.models.vocabulary_word import VocabularyWord
from vocabdrop.models.word_history import WordHistory

__all__ = [
    "CustomTime",
    "DeliverySettings",
    "OutboxMessage",
    "Subscription",
    "VocabularyWord",
    "WordHistory",
]

import json
import logging
from typing import Optional

from openai import OpenAI, OpenAIError

from vocabdrop.config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a vocabulary teaching assistant. Generate unique, interesting, and "
    "educational vocabulary words with clear definitions and helpful example sentences."
)

CATEGORY_PROMPTS = {
    "business": "professional business vocabulary that would be useful in a corporate environment",
    "exam": "advanced academic vocabulary that would appear in standardized tests like SAT, GRE, or TOEFL",
    "slang": "modern English slang and idioms used in casual conversation",
    "general": "useful general vocabulary that would enhance everyday conversation",
}

REQUIRED_FIELDS = ("word", "definition", "example")


class WordGenerationError(Exception):
    """Raised when new words could not be generated."""


def category_prompt(category: str) -> str:
    key = category.lower()
    return CATEGORY_PROMPTS.get(
        key, f"useful vocabulary related to {category} that would enhance knowledge in that area"
    )


class WordGenerator:
    """Generates vocabulary words with the OpenAI chat completions API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self._client = OpenAI(api_key=self.api_key, timeout=30) if self.api_key else None

    def build_user_prompt(self, category: str, count: int) -> str:
        return (
            f"Generate {count} {category_prompt(category)}. Each word should be somewhat "
            "challenging but practical for everyday use.\n\n"
            "For each word, provide: the word itself, a clear and concise definition, a "
            "natural example sentence, the pronunciation, the part of speech, and a short "
            "memory hook.\n\n"
            'Respond with a JSON object of the form {"words": [...]} where each item has the '
            'keys "word", "definition", "example", "pronunciation", "part_of_speech" and '
            '"memory_hook".'
        )

    def generate(self, category: str, count: int) -> list[dict]:
        """
        Generate `count` words for `category`.

        Returns:
            list of dicts with word, definition, example, pronunciation,
            part_of_speech, memory_hook and category keys.
        """
        if count <= 0:
            return []

        if self._client is None:
            raise WordGenerationError("OpenAI API key is not configured")

        category_lower = category.lower()
        logger.info(f"Generating {count} vocabulary words for category: {category_lower}")

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": self.build_user_prompt(category_lower, count)},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise WordGenerationError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise WordGenerationError("Invalid response from OpenAI - no choices returned")

        return self.parse_words(response.choices[0].message.content or "", category_lower)[:count]

    def parse_words(self, content: str, category: str) -> list[dict]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise WordGenerationError("Failed to parse vocabulary words from OpenAI response") from e

        items = data.get("words") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise WordGenerationError("Invalid response format: no word list")

        words = []
        for item in items:
            if not isinstance(item, dict) or not all(item.get(f) for f in REQUIRED_FIELDS):
                logger.warning(f"Skipping incomplete generated word: {item}")
                continue
            words.append(
                {
                    "word": item["word"].strip(),
                    "definition": item["definition"].strip(),
                    "example": item["example"].strip(),
                    "pronunciation": item.get("pronunciation") or "",
                    "part_of_speech": item.get("part_of_speech") or "Unknown",
                    "memory_hook": item.get("memory_hook") or "",
                    "category": category,
                }
            )

        if not words:
            raise WordGenerationError("OpenAI returned no usable words")

        return words

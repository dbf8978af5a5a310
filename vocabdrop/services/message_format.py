from datetime import datetime

import pytz

from vocabdrop.config import settings


def greeting_for_hour(hour: int) -> str:
    if 5 <= hour < 12:
        return "Good morning"
    if 12 <= hour < 17:
        return "Good afternoon"
    if 17 <= hour < 21:
        return "Good evening"
    return "Good night"


def render_word_message(variables: dict, now: datetime) -> str:
    """Render an outbox row's variables into the WhatsApp message body."""
    tz = pytz.timezone(variables.get("timezone") or settings.default_timezone)
    greeting = greeting_for_hour(now.astimezone(tz).hour)
    first_name = variables.get("firstName") or "Friend"

    part_of_speech = variables.get("part_of_speech") or "Unknown"
    part_of_speech = part_of_speech[:1].upper() + part_of_speech[1:]

    lines = [f"{greeting}, {first_name}!"]
    position = variables.get("position")
    total = variables.get("totalWords")
    if position and total:
        lines.append(f"Word {position} of {total} for today")
    lines.extend(
        [
            "",
            f"*{variables.get('word', '').upper()}* ({part_of_speech})",
            f"Pronunciation: {variables.get('pronunciation') or '-'}",
            f"Meaning: {variables.get('definition', '')}",
            f"Example: {variables.get('example', '')}",
            f"Memory Hook: {variables.get('memory_hook') or 'Remember this word!'}",
        ]
    )
    return "\n".join(lines)


def template_parameters(variables: dict) -> list[str]:
    """Ordered body parameters for the approved WhatsApp template."""
    return [
        variables.get("firstName") or "Friend",
        variables.get("word", ""),
        variables.get("pronunciation") or "-",
        variables.get("definition", ""),
        variables.get("example", ""),
        variables.get("memory_hook") or "Remember this word!",
    ]

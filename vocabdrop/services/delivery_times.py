"""Daily slot computation for word deliveries.

Times are local wall-clock times in the subscriber's timezone; `to_utc`
turns them into the absolute instants stored on outbox rows.
"""

from datetime import date, datetime, time, timedelta

import pytz

MIN_WORDS_PER_DAY = 1
MAX_WORDS_PER_DAY = 5

# Gap between consecutive slots when spacing from a preferred start time
PREFERRED_TIME_SPACING_HOURS = {1: 0, 2: 6, 3: 4, 4: 3, 5: 2}

DEFAULT_SCHEDULES = {
    1: ["10:00"],
    2: ["10:00", "16:00"],
    3: ["10:00", "14:00", "18:00"],
    4: ["09:00", "12:00", "15:00", "18:00"],
    5: ["09:00", "11:30", "14:00", "16:30", "19:00"],
}

LATEST_SLOT = time(23, 59)


def clamp_words_per_day(words_per_day: int | None) -> int:
    if not words_per_day:
        return 3
    return max(MIN_WORDS_PER_DAY, min(MAX_WORDS_PER_DAY, int(words_per_day)))


def parse_time(value: str | time) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a time."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Invalid time of day: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    return time(hour, minute)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _from_minutes(total: int) -> time:
    return time(total // 60, total % 60)


def default_schedule(words_per_day: int) -> list[time]:
    count = clamp_words_per_day(words_per_day)
    return [parse_time(t) for t in DEFAULT_SCHEDULES[count]]


def generate_delivery_times(preferred_time: str | None, words_per_day: int) -> list[time]:
    """Auto-mode slots for a day, strictly increasing."""
    count = clamp_words_per_day(words_per_day)

    if not preferred_time or ":" not in preferred_time:
        return default_schedule(count)

    spacing = PREFERRED_TIME_SPACING_HOURS[count] * 60
    start = _minutes(parse_time(preferred_time))

    # Slots never wrap past midnight; start earlier instead
    latest_start = _minutes(LATEST_SLOT) - spacing * (count - 1)
    start = min(start, latest_start)

    return [_from_minutes(start + spacing * i) for i in range(count)]


def resolve_custom_times(custom_times: list[str], words_per_day: int) -> list[time]:
    """Custom-mode slots: the user's times, truncated or padded to the word count."""
    count = clamp_words_per_day(words_per_day)

    chosen: list[time] = []
    for value in custom_times:
        slot = parse_time(value)
        if slot not in chosen:
            chosen.append(slot)
        if len(chosen) == count:
            break

    for slot in default_schedule(count):
        if len(chosen) == count:
            break
        if slot not in chosen:
            chosen.append(slot)

    return sorted(chosen)


def local_date(now: datetime, tz_name: str) -> date:
    return now.astimezone(pytz.timezone(tz_name)).date()


def to_utc(day: date, slot: time, tz_name: str) -> datetime:
    """Convert a local wall-clock slot on `day` into an aware UTC datetime."""
    tz = pytz.timezone(tz_name)
    naive = datetime.combine(day, slot)
    try:
        localized = tz.localize(naive, is_dst=None)
    except pytz.AmbiguousTimeError:
        localized = tz.localize(naive, is_dst=False)
    except pytz.NonExistentTimeError:
        localized = tz.localize(naive + timedelta(hours=1), is_dst=True)
    return localized.astimezone(pytz.UTC)


def local_day_bounds(now: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """UTC instants bounding the subscriber's current local day."""
    tz = pytz.timezone(tz_name)
    today = local_date(now, tz_name)
    start = tz.localize(datetime.combine(today, time.min)).astimezone(pytz.UTC)
    end = tz.localize(datetime.combine(today + timedelta(days=1), time.min)).astimezone(pytz.UTC)
    return start, end

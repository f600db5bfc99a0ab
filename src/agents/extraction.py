"""Rule-based booking intent extraction from live speech transcripts.

Every function here is pure: a transcript fragment goes in, the fields it
mentions come out. Accumulation across fragments belongs to the caller.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import available_timezones

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta, weekdays

from agents.schemas import BookingIntentUpdate

LOGGER = logging.getLogger(__name__)

DURATION_PHRASES: tuple[tuple[str, int], ...] = (
    ("15 minutes", 15),
    ("30 minutes", 30),
    ("60 minutes", 60),
)

EMAIL_PATTERN = re.compile(r"\b[a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,}\b", re.IGNORECASE)
NAME_PATTERN = re.compile(r"my name is ([a-z ]+)", re.IGNORECASE)
TIMEZONE_PATTERN = re.compile(
    r"\b(?:america|australia|europe|asia|africa|pacific)/[a-z_]+(?:/[a-z_]+)?",
    re.IGNORECASE,
)

WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MONTH_NAMES = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
    "|sept|jan|feb|mar|apr|jun|jul|aug|sep|oct|nov|dec"
)
NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

RELATIVE_DAY_PATTERN = re.compile(r"\b(?:the\s+)?(day after tomorrow|tomorrow|today|tonight)\b")
WEEKDAY_PATTERN = re.compile(rf"\b(?:(next|this|on)\s+)?({'|'.join(WEEKDAY_NAMES)})\b")
OFFSET_PATTERN = re.compile(
    rf"\bin\s+(\d+|{'|'.join(NUMBER_WORDS)})\s+(days?|weeks?)\b"
)
ISO_DATE_PATTERN = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")
MONTH_DAY_PATTERN = re.compile(
    rf"\b(?:{MONTH_NAMES})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?\b(?:,?\s+\d{{4}}\b)?"
)
DAY_MONTH_PATTERN = re.compile(
    rf"\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?(?:{MONTH_NAMES})\b(?:,?\s+\d{{4}}\b)?"
)

CLOCK_PATTERN = re.compile(r"\b\d{1,2}(?::\d{2})?\s*(?:a\.?m\.?|p\.?m\.?)(?![a-z])")
AT_CLOCK_PATTERN = re.compile(r"\bat\s+(\d{1,2}:\d{2})\b(?!\s*[ap]\.?m)")
OCLOCK_PATTERN = re.compile(r"\b(\d{1,2})\s+o'?clock\b")
NAMED_TIME_PATTERN = re.compile(r"\b(noon|midday|midnight)\b")

NAMED_TIMES = {"noon": time(12, 0), "midday": time(12, 0), "midnight": time(0, 0)}
DEFAULT_TIME = time(12, 0)
TONIGHT_TIME = time(20, 0)


def extract_intent(
    transcript: str,
    *,
    original: str | None = None,
    now: datetime | None = None,
) -> BookingIntentUpdate:
    """Return the booking fields mentioned in one transcript fragment.

    ``transcript`` is matched case-insensitively. When ``original`` (the
    fragment before lowercasing) is given, the captured name keeps the
    speaker's capitalisation.
    """

    lowered = transcript.lower()
    return BookingIntentUpdate(
        date=extract_date(lowered, now=now),
        duration=extract_duration(lowered),
        name=extract_name(lowered, original=original),
        email=extract_email(lowered),
        time_zone=extract_timezone(lowered),
    )


def extract_duration(transcript: str) -> int | None:
    for phrase, minutes in DURATION_PHRASES:
        if phrase in transcript:
            return minutes
    return None


def extract_email(transcript: str) -> str | None:
    match = EMAIL_PATTERN.search(transcript)
    return match.group(0) if match else None


def extract_name(transcript: str, *, original: str | None = None) -> str | None:
    match = NAME_PATTERN.search(transcript)
    if not match:
        return None
    start, end = match.span(1)
    source = original if original is not None and len(original) == len(transcript) else transcript
    name = source[start:end].strip()
    return name or None


def extract_timezone(transcript: str) -> str | None:
    match = TIMEZONE_PATTERN.search(transcript)
    if not match:
        return None
    matched = match.group(0)
    return _canonical_zones().get(matched.lower(), matched)


@lru_cache(maxsize=1)
def _canonical_zones() -> dict[str, str]:
    return {zone.lower(): zone for zone in available_timezones()}


def extract_date(transcript: str, *, now: datetime | None = None) -> datetime | None:
    """Parse the first date and time mentioned in ``transcript``.

    A day without a clock time implies noon; a clock time without a day
    implies today. Returns ``None`` when neither is present.
    """

    now = now or datetime.now()
    text = transcript.lower()

    day, default_time = _find_day(text, now.date())
    clock = _find_time(text)
    if day is None and clock is None:
        return None

    return datetime.combine(day or now.date(), clock or default_time)


def _find_day(text: str, today: date) -> tuple[date | None, time]:
    candidates: list[tuple[int, date, time]] = []

    match = RELATIVE_DAY_PATTERN.search(text)
    if match:
        word = match.group(1)
        if word == "tomorrow":
            candidates.append((match.start(), today + timedelta(days=1), DEFAULT_TIME))
        elif word == "day after tomorrow":
            candidates.append((match.start(), today + timedelta(days=2), DEFAULT_TIME))
        elif word == "tonight":
            candidates.append((match.start(), today, TONIGHT_TIME))
        else:
            candidates.append((match.start(), today, DEFAULT_TIME))

    match = WEEKDAY_PATTERN.search(text)
    if match:
        modifier, name = match.groups()
        target = WEEKDAY_NAMES.index(name)
        if modifier == "next":
            day = today + timedelta(days=_days_to_next_weekday(today, target))
        else:
            # relativedelta(weekday=X(+1)) resolves to today when today is X.
            day = today + relativedelta(weekday=weekdays[target](+1))
        candidates.append((match.start(), day, DEFAULT_TIME))

    match = OFFSET_PATTERN.search(text)
    if match:
        amount_text, unit = match.groups()
        try:
            amount = int(amount_text) if amount_text.isdigit() else NUMBER_WORDS[amount_text]
            delta = relativedelta(weeks=amount) if unit.startswith("week") else relativedelta(days=amount)
            candidates.append((match.start(), today + delta, DEFAULT_TIME))
        except (OverflowError, ValueError) as exc:
            LOGGER.debug("Ignoring out of range offset %r: %s", match.group(0), exc)

    for pattern in (ISO_DATE_PATTERN, MONTH_DAY_PATTERN, DAY_MONTH_PATTERN):
        match = pattern.search(text)
        if not match:
            continue
        parsed = _parse_calendar_day(match.group(0), today)
        if parsed is not None:
            candidates.append((match.start(), parsed, DEFAULT_TIME))

    if not candidates:
        return None, DEFAULT_TIME
    _, day, default_time = min(candidates, key=lambda candidate: candidate[0])
    return day, default_time


def _days_to_next_weekday(today: date, target: int) -> int:
    """Days until "next <weekday>", counting weeks from Sunday.

    From a weekday, "next" names the day in the following week unless that
    weekday already passed this week. From a weekend day it is the first
    occurrence after the coming Sunday.
    """

    # Sunday-based indexes: Sunday is 0, Saturday is 6.
    ref = (today.weekday() + 1) % 7
    day = (target + 1) % 7
    forward = (day - ref) % 7
    if ref == 0:
        return day or 7
    if ref == 6:
        return {6: 7, 0: 8}.get(day, 1 + day)
    if 0 < day < ref:
        return forward
    return forward + 7


def _parse_calendar_day(phrase: str, today: date) -> date | None:
    default = datetime.combine(today, time(0, 0))
    has_year = re.search(r"\b\d{4}\b", phrase) is not None
    try:
        parsed = date_parser.parse(phrase.replace(" of ", " "), default=default).date()
    except (date_parser.ParserError, ValueError, OverflowError) as exc:
        LOGGER.debug("Ignoring unparseable date phrase %r: %s", phrase, exc)
        return None
    if not has_year and parsed < today:
        parsed += relativedelta(years=1)
    return parsed


def _find_time(text: str) -> time | None:
    candidates: list[tuple[int, time]] = []

    for pattern in (CLOCK_PATTERN, AT_CLOCK_PATTERN):
        match = pattern.search(text)
        if not match:
            continue
        phrase = match.group(match.lastindex or 0).replace(".", "")
        try:
            parsed = date_parser.parse(phrase, default=datetime(2000, 1, 1)).time()
        except (date_parser.ParserError, ValueError, OverflowError) as exc:
            LOGGER.debug("Ignoring unparseable time phrase %r: %s", phrase, exc)
            continue
        candidates.append((match.start(), parsed))

    match = OCLOCK_PATTERN.search(text)
    if match and 0 <= int(match.group(1)) <= 23:
        candidates.append((match.start(), time(int(match.group(1)), 0)))

    match = NAMED_TIME_PATTERN.search(text)
    if match:
        candidates.append((match.start(), NAMED_TIMES[match.group(1)]))

    if not candidates:
        return None
    return min(candidates, key=lambda candidate: candidate[0])[1]

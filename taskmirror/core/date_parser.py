"""Natural-language quick-add parsing: due dates and account hashtags."""

import re
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from taskmirror.domain.account import AccountDescriptor
from taskmirror.domain.task import QuickAddIntent


SATURDAY = 5

_WEEKDAY_NUMBERS = {
    "monday": 0,
    "mon": 0,
    "tuesday": 1,
    "tue": 1,
    "wednesday": 2,
    "wed": 2,
    "thursday": 3,
    "thu": 3,
    "friday": 4,
    "fri": 4,
    "saturday": 5,
    "sat": 5,
    "sunday": 6,
    "sun": 6,
}


def _word_pattern(alternatives: str) -> re.Pattern[str]:
    # Words inside a #hashtag are account hints, never dates.
    return re.compile(rf"(?<!#)\b(?:{alternatives})\b", re.IGNORECASE)


_TODAY = _word_pattern("today")
_TOMORROW = _word_pattern("tomorrow|tmr")
_NEXT_WEEK = _word_pattern(r"next\s+week")
_THIS_WEEK = _word_pattern(r"this\s+week|week")
_WEEKEND = _word_pattern("weekend")
_WEEKDAY = _word_pattern("|".join(sorted(_WEEKDAY_NUMBERS, key=len, reverse=True)))

_HASHTAG = re.compile(r"#(\w+)")


class ParsedDate(NamedTuple):
    date: datetime | None
    matched_text: str | None


class ParsedAccountTag(NamedTuple):
    account_id: str | None
    matched_text: str | None


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def _weekend(day: date) -> date:
    if day.weekday() >= SATURDAY:
        return day
    return day + timedelta(days=SATURDAY - day.weekday())


def _next_weekday(day: date, target: int) -> date:
    # A weekday equal to today means next week's occurrence, never today.
    days_to_add = (target - day.weekday()) % 7 or 7
    return day + timedelta(days=days_to_add)


def parse_natural_language_date(text: str, *, today: date | None = None) -> ParsedDate:
    """Extract a due date from free text.

    Supports, in priority order: today, tomorrow/tmr, next week, this week/week,
    weekend, and weekday names or their three-letter abbreviations. When several
    weekdays are named, the one appearing first in the text is used.

    Args:
        text: Raw quick-add text
        today: Reference day (defaults to the local current date)

    Returns:
        ParsedDate with the resolved local-midnight datetime and the exact
        substring that matched, or (None, None)
    """
    day = today or date.today()

    if match := _TODAY.search(text):
        return ParsedDate(_midnight(day), match.group(0))

    if match := _TOMORROW.search(text):
        return ParsedDate(_midnight(day + timedelta(days=1)), match.group(0))

    if match := _NEXT_WEEK.search(text):
        return ParsedDate(_midnight(_start_of_week(day) + timedelta(weeks=1)), match.group(0))

    if match := _THIS_WEEK.search(text):
        return ParsedDate(_midnight(_start_of_week(day)), match.group(0))

    if match := _WEEKEND.search(text):
        return ParsedDate(_midnight(_weekend(day)), match.group(0))

    if match := _WEEKDAY.search(text):
        target = _WEEKDAY_NUMBERS[match.group(0).lower()]
        return ParsedDate(_midnight(_next_weekday(day, target)), match.group(0))

    return ParsedDate(None, None)


def _tag_matches(tag: str, account: AccountDescriptor) -> bool:
    candidates = (account.email.split("@", 1)[0].lower(), (account.name or "").lower())
    return any(candidate and (tag in candidate or candidate in tag) for candidate in candidates)


def parse_account_tag(text: str, accounts: Sequence[AccountDescriptor]) -> ParsedAccountTag:
    """Find the first #hashtag that names a known account.

    A tag matches when it is a substring of the account's email local part or
    display name, or the other way round (case-insensitive). Tags are tried in
    the order they appear; the first one matching any account wins.
    """
    for match in _HASHTAG.finditer(text):
        tag = match.group(1).lower()
        for account in accounts:
            if _tag_matches(tag, account):
                return ParsedAccountTag(account.id, match.group(0))

    return ParsedAccountTag(None, None)


def clean_task_text(text: str, date_match: str | None, account_match: str | None) -> str:
    """Remove the matched date phrase and hashtag, then collapse whitespace."""
    cleaned = text

    if date_match:
        cleaned = re.sub(rf"(?<!#)\b{re.escape(date_match)}\b", "", cleaned, flags=re.IGNORECASE)

    if account_match:
        cleaned = re.sub(rf"{re.escape(account_match)}(?!\w)", "", cleaned, count=1)

    return " ".join(cleaned.split())


def parse_quick_add(
    text: str,
    accounts: Sequence[AccountDescriptor],
    *,
    today: date | None = None,
) -> QuickAddIntent:
    """Turn one line of quick-add text into a title, due date and account hint.

    The returned title may be empty; rejecting that is up to the caller.
    """
    parsed_date = parse_natural_language_date(text, today=today)
    parsed_account = parse_account_tag(text, accounts)

    return QuickAddIntent(
        title=clean_task_text(text, parsed_date.matched_text, parsed_account.matched_text),
        due=parsed_date.date,
        account_id=parsed_account.account_id,
    )

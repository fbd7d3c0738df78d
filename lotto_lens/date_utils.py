"""
Date Utilities
==============

Draw date handling: normalization of whatever date string the model read off
the ticket, display formatting, and the draw identifier used by the official
results API.
"""

import re
from datetime import date, datetime
from typing import List, Tuple, Union

from loguru import logger

DOTTED_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
DRAW_ID_RE = re.compile(r"^(\d{4})(\d{2})([1-7])$")


def validate_date_format(date_str: str) -> bool:
    """Strict YYYY-MM-DD check, including calendar validity."""
    if not isinstance(date_str, str) or not ISO_DATE_RE.match(date_str):
        return False
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
        return True
    except ValueError:
        return False


def parse_ticket_date(date_str: str) -> date:
    """
    Parse a ticket date in any of the formats we see from the model.

    Accepts D.M.YYYY / DD.MM.YYYY (as printed on tickets), YYYY-MM-DD and
    ISO datetimes.

    Raises:
        ValueError: if the string is not a recognizable calendar date
    """
    text = date_str.strip()
    dotted = DOTTED_DATE_RE.match(text)
    if dotted:
        day, month, year = (int(part) for part in dotted.groups())
        return date(year, month, day)
    if ISO_DATE_RE.match(text):
        return datetime.strptime(text, "%Y-%m-%d").date()
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def normalize_date_string(date_str: str) -> str:
    """
    Convert a ticket date to YYYY-MM-DD for lookups.

    Unparseable input is returned unchanged so the lookup endpoint can reject
    it with a proper message.
    """
    try:
        return parse_ticket_date(date_str).isoformat()
    except (ValueError, AttributeError):
        logger.debug(f"Could not normalize date string: {date_str!r}")
        return date_str


def format_date_for_display(date_str: str) -> str:
    """Format a date string as DD.MM.YYYY, unchanged when unparseable."""
    try:
        return parse_ticket_date(date_str).strftime("%d.%m.%Y")
    except (ValueError, AttributeError):
        return date_str


def derive_draw_id(draw_date: Union[date, datetime, str]) -> str:
    """
    Build the results API key for a draw date: calendar YYYY + ISO week
    (2 digits) + ISO weekday (1=Monday..7=Sunday).

    Example:
        2024-02-01 (Thursday, week 5) -> "2024054"
    """
    if isinstance(draw_date, str):
        draw_date = parse_ticket_date(draw_date)
    elif isinstance(draw_date, datetime):
        draw_date = draw_date.date()

    _, iso_week, iso_weekday = draw_date.isocalendar()
    # Calendar year, not ISO year: around New Year this pairs e.g. 2024 with
    # week 01 for 2024-12-30, which is the key the results API is queried with.
    return f"{draw_date.year:04d}{iso_week:02d}{iso_weekday}"


def _dates_for(year: int, week: int, weekday: int) -> List[date]:
    dates = []
    for iso_year in (year - 1, year, year + 1):
        try:
            day = date.fromisocalendar(iso_year, week, weekday)
        except ValueError:
            continue
        if day.year == year:
            dates.append(day)
    return dates


def parse_draw_id(draw_id: str) -> Tuple[int, int, int]:
    """
    Split a draw identifier back into (calendar year, ISO week, ISO weekday).

    Raises:
        ValueError: if no day of that calendar year has this ISO week and weekday
    """
    match = DRAW_ID_RE.match(draw_id)
    if not match:
        raise ValueError(f"Invalid draw identifier: {draw_id!r}")
    year, week, weekday = (int(part) for part in match.groups())
    if not _dates_for(year, week, weekday):
        raise ValueError(f"Draw identifier {draw_id!r} names no date in {year}")
    return year, week, weekday


def draw_id_dates(draw_id: str) -> List[date]:
    """
    Calendar dates that derive to this identifier, in order.

    Usually one; ids for week 01 or weeks 52-53 can name both early January
    and late December of the same year.
    """
    return _dates_for(*parse_draw_id(draw_id))

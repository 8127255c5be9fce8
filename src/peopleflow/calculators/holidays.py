"""German public holiday calendar per federal state.

Everything here is a pure function of ``(year, region)``; results are cached.
Fixed-date holidays are enumerated with the states that observe them, and
movable feasts are derived from Easter Sunday (Gauss's algorithm, Gregorian
calendar). Buß- und Bettag is the Wednesday eleven days before the first
Sunday of Advent.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache

from peopleflow.config import DEFAULT_REGION, GERMAN_STATES, get_settings

# Gregorian calendar reform; Gauss's formula is not valid before it
MIN_YEAR = 1583
MAX_YEAR = 9999

ALL_STATES: frozenset[str] = GERMAN_STATES


@dataclass(frozen=True, order=True)
class Holiday:
    """A public holiday on a calendar day."""

    day: date
    name: str


# (month, day, name, observing states)
FIXED_HOLIDAYS: tuple[tuple[int, int, str, frozenset[str]], ...] = (
    (1, 1, "Neujahr", ALL_STATES),
    (1, 6, "Heilige Drei Könige", frozenset({"BW", "BY", "ST"})),
    (5, 1, "Tag der Arbeit", ALL_STATES),
    (8, 8, "Augsburger Friedensfest", frozenset({"BY"})),
    (8, 15, "Mariä Himmelfahrt", frozenset({"BY", "SL"})),
    (10, 3, "Tag der Deutschen Einheit", ALL_STATES),
    (
        10,
        31,
        "Reformationstag",
        frozenset({"BB", "MV", "SN", "ST", "TH", "HB", "HH", "NI", "SH"}),
    ),
    (11, 1, "Allerheiligen", frozenset({"BW", "BY", "NW", "RP", "SL"})),
    (12, 25, "1. Weihnachtsfeiertag", ALL_STATES),
    (12, 26, "2. Weihnachtsfeiertag", ALL_STATES),
)

# (offset from Easter Sunday in days, name, observing states)
EASTER_HOLIDAYS: tuple[tuple[int, str, frozenset[str]], ...] = (
    (-2, "Karfreitag", ALL_STATES),
    (1, "Ostermontag", ALL_STATES),
    (39, "Christi Himmelfahrt", ALL_STATES),
    (50, "Pfingstmontag", ALL_STATES),
    (60, "Fronleichnam", frozenset({"BW", "BY", "HE", "NW", "RP", "SL", "SN", "TH"})),
)

REPENTANCE_DAY_STATES = frozenset({"SN"})


def normalize_region(region: str | None, default: str | None = None) -> str:
    """Return a known state code.

    Anything else falls back to ``default``, or to the configured
    ``DEFAULT_REGION`` setting when no default is given.
    """
    if region:
        code = region.strip().upper()
        if code in GERMAN_STATES:
            return code
    if default is None:
        default = get_settings().default_region
    return default if default in GERMAN_STATES else DEFAULT_REGION


def easter_sunday(year: int) -> date:
    """Compute Easter Sunday with Gauss's algorithm."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    n = (h + l - 7 * m + 114) // 31
    p = (h + l - 7 * m + 114) % 31
    return date(year, n, p + 1)


def first_advent(year: int) -> date:
    """First Sunday of Advent: the fourth Sunday before Christmas Day."""
    christmas = date(year, 12, 25)
    # Sunday is weekday 6; a Christmas Sunday does not count as Advent
    days_back = (christmas.weekday() + 1) % 7 or 7
    return christmas - timedelta(days=days_back + 21)


def repentance_day(year: int) -> date:
    """Buß- und Bettag."""
    return first_advent(year) - timedelta(days=11)


@lru_cache(maxsize=256)
def _holidays_for(year: int, region: str) -> frozenset[Holiday]:
    if not MIN_YEAR <= year <= MAX_YEAR:
        return frozenset()

    result: set[Holiday] = set()
    for month, day, name, states in FIXED_HOLIDAYS:
        if region in states:
            result.add(Holiday(date(year, month, day), name))

    easter = easter_sunday(year)
    for offset, name, states in EASTER_HOLIDAYS:
        if region in states:
            result.add(Holiday(easter + timedelta(days=offset), name))

    if region in REPENTANCE_DAY_STATES:
        result.add(Holiday(repentance_day(year), "Buß- und Bettag"))

    return frozenset(result)


def holidays_of(year: int, region: str | None = None) -> frozenset[Holiday]:
    """All public holidays of ``year`` observed in ``region``.

    Unknown regions fall back to the configured default region; years outside the
    Gregorian range yield an empty set.
    """
    return _holidays_for(year, normalize_region(region))


def _as_day(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def holiday_name(day: date, region: str | None = None) -> str | None:
    """Name of the holiday on ``day``, or None."""
    day = _as_day(day)
    for holiday in holidays_of(day.year, region):
        if holiday.day == day:
            return holiday.name
    return None


def is_holiday(day: date, region: str | None = None) -> bool:
    """Check whether ``day`` (compared by date part only) is a public holiday."""
    return holiday_name(day, region) is not None


def is_working_day(day: date, region: str | None = None) -> bool:
    """Monday to Friday and not a public holiday."""
    day = _as_day(day)
    return day.weekday() < 5 and not is_holiday(day, region)


def working_days_between(start: date, end: date, region: str | None = None) -> int:
    """Count working days in ``[start, end]`` inclusive; 0 when ``end < start``."""
    start, end = _as_day(start), _as_day(end)
    count = 0
    current = start
    while current <= end:
        if is_working_day(current, region):
            count += 1
        current += timedelta(days=1)
    return count


def working_days_in_month(year: int, month: int, region: str | None = None) -> int:
    """Count working days in a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return working_days_between(date(year, month, 1), date(year, month, last_day), region)

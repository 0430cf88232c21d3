# spinner/formatting.py
"""
Human-facing labels derived from a photo's capture time.

Two age modes exist. `relative` describes how long ago a photo was taken
("10d", "3w", "1y2m") and is compact enough for the spinner's small display.
`birthdate` describes how old someone was when the photo was taken
("Newborn", "5 weeks", "2 years old"), measured from a fixed birth date.
"""
import logging
import math
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

AGE_MODES = ('relative', 'birthdate')

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sept', 'Oct', 'Nov', 'Dec']

SECONDS_PER_DAY = 24 * 60 * 60


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parses an API timestamp into an aware datetime.

    PhotoPrism sends `TakenAt` in UTC with a trailing `Z` and `TakenAtLocal`
    without an offset; naive values are taken as UTC. Anything unparseable
    yields None rather than an error.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            logger.debug(f"Could not parse timestamp {value!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Floor of the difference in days, like the devices' own arithmetic."""
    return math.floor((later - earlier).total_seconds() / SECONDS_PER_DAY)


def relative_age_label(captured_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Formats how long ago a photo was taken: "10d", "3w", "7m", "2y" or "1y4m".

    Args:
        captured_at: When the photo was taken; None gives an empty label.
        now: Reference time, defaults to the current UTC time.
    """
    if captured_at is None:
        return ""
    now = now or datetime.now(timezone.utc)
    days = max(0, whole_days_between(captured_at, now))

    if days < 14:
        return f"{days}d"
    if days < 60:
        # half a week rounds up
        return f"{math.floor(days / 7 + 0.5)}w"
    if days < 365:
        return f"{days // 30}m"
    years = days // 365
    months = (days % 365) // 30
    return f"{years}y{months}m" if months else f"{years}y"


def _plural(count: int, unit: str) -> str:
    return f"1 {unit}" if count == 1 else f"{count} {unit}s"


def birthdate_age_label(captured_at: Optional[datetime], birth_date: date) -> str:
    """
    Formats the age of the person the album is about when the photo was taken.

    0-1 days is "Newborn", then days, weeks (under 8 weeks), months (under
    24 months, 30.44 day months) and finally "N years old". Photos taken before
    the birth date have no label.
    """
    if captured_at is None:
        return ""
    born = datetime(birth_date.year, birth_date.month, birth_date.day, tzinfo=timezone.utc)
    days = whole_days_between(born, captured_at)

    if days < 0:
        return ""
    if days <= 1:
        return "Newborn"
    if days < 7:
        return _plural(days, "day")
    if days < 56:
        return _plural(days // 7, "week")
    if days < 730:
        return _plural(math.floor(days / 30.44), "month")
    years = math.floor(days / 365.25)
    return "1 year old" if years == 1 else f"{years} years old"


def readable_date(captured_at: Optional[datetime]) -> str:
    """Formats a capture time as "25th Apr 2019"; None gives an empty string."""
    if captured_at is None:
        return ""
    day = captured_at.day
    if day in (1, 21, 31):
        suffix = 'st'
    elif day in (2, 22):
        suffix = 'nd'
    elif day in (3, 23):
        suffix = 'rd'
    else:
        suffix = 'th'
    return f"{day}{suffix} {MONTH_NAMES[captured_at.month - 1]} {captured_at.year}"


def iso_date(captured_at: Optional[datetime]) -> str:
    if captured_at is None:
        return ""
    return captured_at.isoformat().replace('+00:00', 'Z')


class AgeFormatter:
    """Applies the configured age mode. One instance is shared by all publishers."""

    def __init__(self, mode: str = 'relative', birth_date: Optional[date] = None, clock=None):
        if mode not in AGE_MODES:
            raise ValueError(f"Unknown age mode {mode!r}, expected one of {AGE_MODES}")
        if mode == 'birthdate' and birth_date is None:
            raise ValueError("The birthdate age mode needs a birth date")
        self.mode = mode
        self.birth_date = birth_date
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, mode: str, birth_date: Optional[str]) -> 'AgeFormatter':
        parsed = date.fromisoformat(str(birth_date)) if birth_date else None
        return cls(mode=mode, birth_date=parsed)

    def label(self, captured_at: Optional[datetime]) -> str:
        if self.mode == 'birthdate':
            return birthdate_age_label(captured_at, self.birth_date)
        return relative_age_label(captured_at, self._clock())

    def age_days(self, captured_at: Optional[datetime]) -> Optional[int]:
        """Whole days since capture, as sent in the detailed status payload."""
        if captured_at is None:
            return None
        return whole_days_between(captured_at, self._clock())

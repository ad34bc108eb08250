"""
Study streak calculation.

A user's streak history is just the set of calendar days on which they
finished a study session. Everything shown to the user (current streak,
best streak, whether today's study is still outstanding) is derived from
that set on demand, so there is no counter that can drift out of sync.

Day keys are ISO dates ("YYYY-MM-DD"). Which calendar "today" means is
decided by the caller through the timezone of ``now``; see
``UserProfile.local_now``.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone


STATUS_ACTIVE = 'active'       # Studied today
STATUS_AT_RISK = 'at-risk'     # Not yet today, but yesterday's streak is intact
STATUS_BROKEN = 'broken'       # No live streak

ONE_DAY = timedelta(days=1)
SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class StreakView:
    """Read-only projection of a user's streak at a given moment."""
    current_streak: int
    longest_streak: int
    studied_today: bool
    status: str
    hours_remaining: float

    def as_dict(self):
        return asdict(self)


def date_key(value) -> str:
    """Return the ISO day key for a date or datetime."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def parse_date_key(value) -> date | None:
    """
    Turn a stored day key back into a date.

    Returns None for anything that isn't a date, a datetime or an ISO date
    string, so a single bad record can be skipped instead of failing the read.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_studied_dates(studied_dates) -> set[date]:
    """Parse an iterable of day keys, dropping malformed entries."""
    parsed = set()
    for value in studied_dates or ():
        day = parse_date_key(value)
        if day is not None:
            parsed.add(day)
    return parsed


def current_streak(days: set[date], today: date) -> int:
    """
    Count consecutive studied days ending today.

    If today hasn't been studied yet the count starts from yesterday, since
    the streak only breaks once today has fully passed.
    """
    cursor = today if today in days else today - ONE_DAY
    count = 0
    while cursor in days:
        count += 1
        cursor -= ONE_DAY
    return count


PAST_STREAK_LIMIT = 10


@dataclass(frozen=True)
class PastStreak:
    """A finished run of consecutive study days."""
    streak: int
    start_date: date
    end_date: date

    def as_dict(self):
        return {
            'streak': self.streak,
            'start': self.start_date.isoformat(),
            'end': self.end_date.isoformat(),
        }


def streak_runs(days: set[date]) -> list[tuple[date, date]]:
    """Split the set into (start, end) runs of consecutive days, oldest first."""
    runs = []
    start = previous = None
    for day in sorted(days):
        if previous is None or day - previous != ONE_DAY:
            if start is not None:
                runs.append((start, previous))
            start = day
        previous = day
    if start is not None:
        runs.append((start, previous))
    return runs


def longest_streak(days: set[date]) -> int:
    """Length of the longest run of consecutive days in the set."""
    return max(((end - start).days + 1 for start, end in streak_runs(days)), default=0)


def past_streaks(days: set[date], today: date, limit: int = PAST_STREAK_LIMIT) -> list[PastStreak]:
    """
    Runs that have already ended, most recent first.

    A run ending today or yesterday is still live and is left out.
    """
    finished = [
        PastStreak(streak=(end - start).days + 1, start_date=start, end_date=end)
        for start, end in streak_runs(days)
        if end < today - ONE_DAY
    ]
    finished.reverse()
    return finished[:limit]


def hours_until_midnight(now: datetime) -> float:
    """Hours left in the calendar day that ``now`` falls on."""
    midnight = datetime.combine(now.date() + ONE_DAY, time.min, tzinfo=now.tzinfo)
    if now.tzinfo is not None:
        # Compare in UTC so a DST change during the day is accounted for
        remaining = midnight.astimezone(dt_timezone.utc) - now.astimezone(dt_timezone.utc)
    else:
        remaining = midnight - now
    return remaining.total_seconds() / SECONDS_PER_HOUR


def compute_streak(studied_dates, now: datetime | None = None) -> StreakView:
    """
    Build the streak view for a set of studied day keys.

    Args:
        studied_dates: Iterable of ISO day keys (or date objects)
        now: Current moment in the timezone that defines "today"
            (defaults to the local clock)

    Returns:
        StreakView with current and longest streak, today's status and
        the hours left before the day ends
    """
    if now is None:
        now = datetime.now()

    days = parse_studied_dates(studied_dates)
    today = now.date()
    studied_today = today in days

    current = current_streak(days, today)
    longest = max(longest_streak(days), current)

    if studied_today:
        status = STATUS_ACTIVE
        hours_remaining = hours_until_midnight(now)
    elif current > 0:
        status = STATUS_AT_RISK
        hours_remaining = hours_until_midnight(now)
    else:
        status = STATUS_BROKEN
        hours_remaining = 0.0

    return StreakView(
        current_streak=current,
        longest_streak=longest,
        studied_today=studied_today,
        status=status,
        hours_remaining=hours_remaining,
    )

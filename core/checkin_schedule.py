"""
core/checkin_schedule.py
────────────────────────────────────────────────────────────────────────
Weekly check-in window, pure date arithmetic.

Each window is anchored to a "target Sunday": it opens the Saturday before
at 18:00 UTC and closes the Tuesday after at 23:59:59.999 UTC. Those ~78
hours contain Sunday in every UTC offset.

A client's first ever check-in is exempt from the window; that rule lives
with the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

# datetime.weekday(): Monday == 0 ... Sunday == 6
_MON, _TUE, _SAT, _SUN = 0, 1, 5, 6
OPENS_AT = time(18, 0)
CLOSES_AT = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class CheckInWindow:
    opens: datetime
    closes: datetime
    target_sunday: datetime

    def contains(self, moment: datetime) -> bool:
        return self.opens <= _as_utc(moment) <= self.closes


def _as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _window_for_sunday(sunday: datetime) -> CheckInWindow:
    day = sunday.date()
    return CheckInWindow(
        opens=datetime.combine(day - timedelta(days=1), OPENS_AT, tzinfo=timezone.utc),
        closes=datetime.combine(day + timedelta(days=2), CLOSES_AT, tzinfo=timezone.utc),
        target_sunday=sunday,
    )


def get_current_checkin_window(now: datetime | None = None) -> CheckInWindow:
    now = _as_utc(now or _now())
    today = datetime.combine(now.date(), time(0), tzinfo=timezone.utc)
    weekday = now.weekday()

    if weekday == _SAT and now.hour >= 18:
        sunday = today + timedelta(days=1)
    elif weekday == _SUN:
        sunday = today
    elif weekday == _MON:
        sunday = today - timedelta(days=1)
    elif weekday == _TUE:
        sunday = today - timedelta(days=2)
    else:
        # Wed-Fri, or Saturday before 18:00: the upcoming Sunday
        sunday = today + timedelta(days=_SUN - weekday)

    return _window_for_sunday(sunday)


def get_previous_checkin_window(now: datetime | None = None) -> CheckInWindow:
    current = get_current_checkin_window(now)
    return _window_for_sunday(current.target_sunday - timedelta(days=7))


def is_within_checkin_window(now: datetime | None = None) -> bool:
    now = _as_utc(now or _now())
    return get_current_checkin_window(now).contains(now)


def get_next_window_opens(now: datetime | None = None) -> datetime:
    """Opening time of the next window that has not opened yet."""
    now = _as_utc(now or _now())
    current = get_current_checkin_window(now)
    if now < current.opens:
        return current.opens
    return _window_for_sunday(current.target_sunday + timedelta(days=7)).opens


def has_checked_in_this_week(
    last_checkin: datetime | None, now: datetime | None = None
) -> bool:
    if last_checkin is None:
        return False
    return get_current_checkin_window(now).contains(last_checkin)


def is_client_overdue(
    last_checkin: datetime | None,
    onboarding_completed: bool,
    now: datetime | None = None,
) -> bool:
    """
    Overdue = the most recent window has closed and holds no check-in.

    While a window is open nothing is overdue yet. Between windows the one
    that just closed is the previous window.
    """
    if not onboarding_completed:
        return False
    now = _as_utc(now or _now())
    if is_within_checkin_window(now):
        return False

    closed = get_previous_checkin_window(now)
    if last_checkin is None:
        return True
    return not closed.contains(last_checkin)

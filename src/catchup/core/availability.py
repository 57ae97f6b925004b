"""Pure availability domain logic - no I/O dependencies."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta


@dataclass(frozen=True)
class AvailabilityWindow:
    """An open block of time the user could spend with someone."""

    start: datetime
    end: datetime
    timezone: str = "UTC"
    in_person: bool = True

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() / 60)

    def format(self) -> str:
        return f"{self.start.strftime('%a %b %d %H:%M')}-{self.end.strftime('%H:%M')} ({self.duration_minutes()} min)"

    def contains(self, dt: datetime) -> bool:
        """Check if a datetime falls within this window."""
        return self.start <= dt < self.end

    def overlaps(self, other: "AvailabilityWindow") -> bool:
        """Check if this window overlaps with another."""
        return self.start < other.end and other.start < self.end

    def covers(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class BusyBlock:
    """A busy interval from the user's calendar."""

    start: datetime
    end: datetime


@dataclass
class AvailabilityRules:
    """User-configured rules applied on top of calendar free/busy."""

    nighttime: tuple[time, time] | None = (time(22, 0), time(7, 0))
    commute_windows: list[tuple[time, time]] = field(default_factory=list)
    commute_buffer_minutes: int = 0
    work_hours: tuple[time, time] | None = (time(9, 0), time(17, 0))
    min_duration: int = 30


def parse_time_range(value: str) -> tuple[time, time]:
    """Parse "HH:MM-HH:MM" into a (start, end) pair."""
    start_str, _, end_str = value.partition("-")
    if not end_str:
        raise ValueError(f"Invalid time range: {value!r}")
    return time.fromisoformat(start_str.strip()), time.fromisoformat(end_str.strip())


def _day_span(d: date, rules: AvailabilityRules, tz) -> tuple[datetime, datetime]:
    """Waking hours for a day, bounded by the nighttime rule."""
    if rules.nighttime is None:
        return datetime.combine(d, time(0, 0), tzinfo=tz), datetime.combine(d + timedelta(days=1), time(0, 0), tzinfo=tz)

    night_start, night_end = rules.nighttime
    if night_end < night_start:
        # Overnight, e.g. 22:00-07:00
        return datetime.combine(d, night_end, tzinfo=tz), datetime.combine(d, night_start, tzinfo=tz)
    # Night inside the day, e.g. 01:00-05:00; keep the longer tail
    return datetime.combine(d, night_end, tzinfo=tz), datetime.combine(d + timedelta(days=1), time(0, 0), tzinfo=tz)


def _subtract(
    spans: list[tuple[datetime, datetime]],
    blocked: list[tuple[datetime, datetime]],
) -> list[tuple[datetime, datetime]]:
    """Remove blocked intervals from a list of spans."""
    result = []
    for span_start, span_end in spans:
        current = span_start
        for b_start, b_end in sorted(blocked):
            if b_end <= current or b_start >= span_end:
                continue
            if b_start > current:
                result.append((current, b_start))
            current = max(current, b_end)
        if current < span_end:
            result.append((current, span_end))
    return result


def _split_at_work_hours(
    span: tuple[datetime, datetime],
    rules: AvailabilityRules,
) -> list[tuple[datetime, datetime, bool]]:
    """Split a span at work-hour boundaries, flagging in-person capable pieces.

    Weekday work hours are remote-only; everything else is in-person capable.
    """
    start, end = span
    if rules.work_hours is None or start.weekday() >= 5:
        return [(start, end, True)]

    work_start = datetime.combine(start.date(), rules.work_hours[0], tzinfo=start.tzinfo)
    work_end = datetime.combine(start.date(), rules.work_hours[1], tzinfo=start.tzinfo)
    cuts = sorted({start, end, *(t for t in (work_start, work_end) if start < t < end)})

    pieces = []
    for a, b in zip(cuts, cuts[1:]):
        during_work = work_start <= a and b <= work_end
        pieces.append((a, b, not during_work))
    return pieces


def find_free_windows(
    busy: list[BusyBlock],
    start_date: date,
    end_date: date,
    rules: AvailabilityRules | None = None,
    tz=None,
    timezone_name: str = "UTC",
) -> list[AvailabilityWindow]:
    """
    Find open windows between busy blocks, honouring availability rules.

    Pure function - no I/O.

    Args:
        busy: Busy intervals from the calendar
        start_date: First day to consider (inclusive)
        end_date: Last day to consider (inclusive)
        rules: Nighttime blackout, commute windows and buffers, work hours
        tz: tzinfo for day boundaries
        timezone_name: Name recorded on produced windows

    Returns:
        Chronological, non-overlapping AvailabilityWindows
    """
    rules = rules or AvailabilityRules()
    buffer = timedelta(minutes=rules.commute_buffer_minutes)
    padded = [(b.start - buffer, b.end + buffer) for b in busy]

    windows = []
    d = start_date
    while d <= end_date:
        spans = [_day_span(d, rules, tz)]

        blocked = list(padded)
        if d.weekday() < 5:
            for c_start, c_end in rules.commute_windows:
                blocked.append(
                    (datetime.combine(d, c_start, tzinfo=tz), datetime.combine(d, c_end, tzinfo=tz))
                )

        for span in _subtract(spans, blocked):
            for a, b, in_person in _split_at_work_hours(span, rules):
                window = AvailabilityWindow(start=a, end=b, timezone=timezone_name, in_person=in_person)
                if window.duration_minutes() >= rules.min_duration:
                    windows.append(window)
        d += timedelta(days=1)

    return sort_windows(windows)


def sort_windows(windows: list[AvailabilityWindow]) -> list[AvailabilityWindow]:
    """Sort windows chronologically."""
    return sorted(windows, key=lambda w: (w.start, w.end))


def filter_windows_by_range(
    windows: list[AvailabilityWindow],
    start: datetime,
    end: datetime,
) -> list[AvailabilityWindow]:
    """Keep windows that start inside [start, end)."""
    return [w for w in windows if start <= w.start < end]

"""Spaced repetition schedule for error book entries.

Reviews follow a fixed forgetting-curve table: an entry is due one day after
it was added, then 2, 4, 7, 15, 30 and 60 days after each successive review.
After the seventh review the cycle is complete and the due date becomes the
sentinel ``0``.

All timestamps are integer milliseconds since the epoch. Day arithmetic on
due dates is a plain ``DAY_MS`` offset; calendar comparisons (today,
tomorrow) use the local date of each timestamp.
"""
from datetime import UTC, date, datetime, time
from typing import List, Optional, Sequence

from studybook.models.error_book_models import ReviewRecord

# Days between reviews, indexed by the number of reviews already done
REVIEW_INTERVALS = [1, 2, 4, 7, 15, 30, 60]
MAX_REVIEWS = len(REVIEW_INTERVALS)

DAY_MS = 24 * 60 * 60 * 1000

REVIEW_COMPLETE = 0


def to_ms(value: datetime) -> int:
    """Millisecond timestamp of a datetime; naive values are local time."""
    return int(value.timestamp() * 1000)


def now_ms() -> int:
    """Current time as a millisecond timestamp."""
    return to_ms(datetime.now(UTC))


def local_date(timestamp: int) -> date:
    """Calendar date of a millisecond timestamp in local time."""
    return datetime.fromtimestamp(timestamp / 1000).date()


def day_start_ms(day: date) -> int:
    """Millisecond timestamp of local midnight at the start of a day."""
    return to_ms(datetime.combine(day, time.min))


def calculate_next_review_date(added_at: int, review_records: Optional[Sequence[ReviewRecord]]) -> int:
    """Return when an entry is next due, or REVIEW_COMPLETE once the table is exhausted.

    Pure in (added_at, review_records): k records schedule the next review
    REVIEW_INTERVALS[k] days after the latest one.
    """
    if not review_records:
        return added_at + REVIEW_INTERVALS[0] * DAY_MS

    count = len(review_records)
    if count >= MAX_REVIEWS:
        return REVIEW_COMPLETE

    last_review = review_records[-1]
    return last_review.review_date + REVIEW_INTERVALS[count] * DAY_MS


def format_review_date(timestamp: int, now: Optional[int] = None) -> str:
    """Describe a due date relative to now for display."""
    if timestamp == REVIEW_COMPLETE:
        return "Completed"

    if now is None:
        now = now_ms()
    diff = timestamp - now

    if diff < 0:
        days = abs(diff) // DAY_MS
        if days == 0:
            return "Overdue today"
        return f"Overdue by {days} day{'s' if days != 1 else ''}"

    review_day = local_date(timestamp)
    day_diff = (review_day - local_date(now)).days

    if day_diff == 0:
        return "Today"
    if day_diff == 1:
        return "Tomorrow"
    if day_diff <= 7:
        return f"In {day_diff} days"

    review_time = datetime.fromtimestamp(timestamp / 1000)
    return f"{review_time:%b} {review_time.day}"


def review_levels(records: Optional[List[ReviewRecord]]) -> int:
    """Number of reviews already recorded for an entry."""
    return len(records) if records else 0

"""Derived views over study plan tasks: daily logs, activity graph and progress."""
import math
import re
from datetime import date, timedelta
from itertools import groupby
from typing import Dict, Iterable, List, Sequence

from studybook.models.plan_models import (
    ActivityDay,
    DailyLog,
    KindProgress,
    ListeningTask,
    TaskItem,
    VocabTask,
)

VOCAB_ID_PATTERN = re.compile(r"ch(\d+)")
LISTENING_ID_PATTERN = re.compile(r"c(\d+)t(\d+)s(\d+)")

# (min tasks, min hours, level), checked from the top
ACTIVITY_THRESHOLDS = [
    (20, 3, 4),
    (12, 2, 3),
    (6, 1, 2),
]


def build_daily_logs(
    vocab_tasks: Sequence[VocabTask],
    listening_tasks: Sequence[ListeningTask],
) -> List[DailyLog]:
    """Group completed tasks by completion date, newest day first."""
    logs: Dict[str, DailyLog] = {}

    def log_for(task: TaskItem) -> DailyLog:
        if task.completed_at not in logs:
            logs[task.completed_at] = DailyLog(date=task.completed_at)
        log = logs[task.completed_at]
        log.total_time += task.time_spent or 0
        return log

    for task in vocab_tasks:
        if task.is_completed and task.completed_at:
            log_for(task).vocab.append(task.id)

    for task in listening_tasks:
        if task.is_completed and task.completed_at:
            log_for(task).listening.append(task.id)

    for log in logs.values():
        log.summary = summarize_day(log)

    return sorted(logs.values(), key=lambda log: log.date, reverse=True)


def _compress_sections(sections: List[int]) -> str:
    """Collapse consecutive section numbers into ranges, e.g. [1, 2, 4] -> S1-S2,S4."""
    parts = []
    for _, run in groupby(enumerate(sorted(sections)), key=lambda pair: pair[1] - pair[0]):
        numbers = [section for _, section in run]
        if len(numbers) == 1:
            parts.append(f"S{numbers[0]}")
        else:
            parts.append(f"S{numbers[0]}-S{numbers[-1]}")
    return ",".join(parts)


def summarize_day(log: DailyLog) -> str:
    """Human-readable summary of the chapters and sections completed in a log."""
    chapters = sorted(
        int(match.group(1))
        for match in (VOCAB_ID_PATTERN.search(task_id) for task_id in log.vocab)
        if match
    )

    grouped: Dict[tuple, List[int]] = {}
    for task_id in log.listening:
        match = LISTENING_ID_PATTERN.search(task_id)
        if not match:
            continue
        book, test, section = (int(value) for value in match.groups())
        grouped.setdefault((book, test), []).append(section)

    parts = []
    if chapters:
        parts.append("Vocab " + ", ".join(f"Ch.{chapter}" for chapter in chapters))
    if grouped:
        groups = [
            f"C{book}T{test}{_compress_sections(sections)}"
            for (book, test), sections in sorted(grouped.items())
        ]
        parts.append("Listening " + ", ".join(groups))
    return "; ".join(parts)


def activity_level(count: int, hours: float) -> int:
    """Classify a day's activity into a heatmap level from 0 to 4."""
    if count <= 0:
        return 0
    for min_count, min_hours, level in ACTIVITY_THRESHOLDS:
        if count >= min_count or hours >= min_hours:
            return level
    return 1


def build_activity_graph(logs: Iterable[DailyLog], start: date, end: date) -> List[ActivityDay]:
    """One heatmap cell per calendar day from start through end inclusive."""
    logs_by_date = {log.date: log for log in logs}
    days = []
    current = start
    while current <= end:
        date_str = current.isoformat()
        log = logs_by_date.get(date_str)
        if log:
            count = log.task_count
            days.append(ActivityDay(
                date=date_str,
                level=activity_level(count, log.total_time / 3600),
                count=count,
                time=log.total_time,
            ))
        else:
            days.append(ActivityDay(date=date_str, level=0, count=0, time=0))
        current += timedelta(days=1)
    return days


def kind_progress(tasks: Sequence[TaskItem], total: int) -> KindProgress:
    """Completed count and rounded percentage for one task list."""
    completed = sum(1 for task in tasks if task.is_completed)
    percentage = math.floor(completed * 100 / total + 0.5) if total else 0
    return KindProgress(completed=completed, total=total, percentage=percentage)


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS, or HH:MM:SS once an hour is reached."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_date(date_str: str) -> str:
    """Format an ISO date string as a short month/day label."""
    day = date.fromisoformat(date_str)
    return f"{day:%b} {day.day}"

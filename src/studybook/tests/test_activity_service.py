"""Tests for daily logs, activity graph and progress helpers."""
from datetime import date

import pytest

from studybook.models.plan_models import DailyLog, ListeningTask, TaskStatus, VocabTask
from studybook.services.activity_service import (
    activity_level,
    build_activity_graph,
    build_daily_logs,
    format_date,
    format_time,
    kind_progress,
    summarize_day,
)


def _done(task, day: str, seconds: int = None):
    task.status = TaskStatus.COMPLETED
    task.completed_at = day
    task.time_spent = seconds
    return task


@pytest.mark.parametrize(
    "count, hours, level",
    [
        (0, 0, 0),
        (0, 5, 0),
        (1, 0, 1),
        (5, 0.5, 1),
        # Thresholds are 20 tasks or 3h, 12 or 2h, 6 or 1h; 1.5h reaches only the 1h tier
        (5, 1.5, 2),
        (6, 0, 2),
        (12, 0, 3),
        (3, 2, 3),
        (20, 0, 4),
        (1, 3, 4),
    ],
)
def test_activity_level(count: int, hours: float, level: int) -> None:
    """Test heatmap level thresholds."""
    assert activity_level(count, hours) == level


def test_build_daily_logs_groups_by_date() -> None:
    """Test grouping completed tasks into newest-first logs."""
    vocab = [
        _done(VocabTask.create(2), "2024-06-01", 300),
        _done(VocabTask.create(1), "2024-06-01", 600),
        VocabTask.create(3),
        _done(VocabTask.create(4), "2024-06-03"),
    ]
    listening = [
        _done(ListeningTask.create(12, 1, 1), "2024-06-03", 120),
        _done(ListeningTask.create(12, 1, 2), "2024-06-03", 60),
    ]

    logs = build_daily_logs(vocab, listening)

    assert [log.date for log in logs] == ["2024-06-03", "2024-06-01"]
    assert logs[0].vocab == ["vocab-ch4"]
    assert logs[0].listening == ["listening-c12t1s1", "listening-c12t1s2"]
    assert logs[0].total_time == 180
    assert logs[0].task_count == 3
    assert logs[1].summary == "Vocab Ch.1, Ch.2"
    assert logs[1].total_time == 900


def test_build_daily_logs_skips_pending_tasks() -> None:
    """Test that pending tasks never appear in logs."""
    task = VocabTask.create(1)
    task.completed_at = "2024-06-01"
    assert build_daily_logs([task], []) == []


def test_summarize_day_compresses_sections() -> None:
    """Test the combined vocabulary and listening summary."""
    log = DailyLog(
        date="2024-06-10",
        vocab=["vocab-ch2", "vocab-ch1"],
        listening=[
            "listening-c12t1s1",
            "listening-c12t1s2",
            "listening-c12t1s3",
            "listening-c12t1s4",
            "listening-c12t2s3",
            "listening-c13t4s1",
            "listening-c13t4s2",
            "listening-c13t4s4",
        ],
    )
    assert summarize_day(log) == "Vocab Ch.1, Ch.2; Listening C12T1S1-S4, C12T2S3, C13T4S1-S2,S4"


def test_summarize_empty_day() -> None:
    """Test the summary of a day without tasks."""
    assert summarize_day(DailyLog(date="2024-06-10")) == ""


def test_activity_graph_covers_every_day() -> None:
    """Test that the graph has one cell per day, inclusive of both ends."""
    logs = [DailyLog(date="2024-06-02", vocab=["vocab-ch1"], total_time=7200)]

    graph = build_activity_graph(logs, date(2024, 6, 1), date(2024, 6, 3))

    assert [day.date for day in graph] == ["2024-06-01", "2024-06-02", "2024-06-03"]
    assert [day.level for day in graph] == [0, 3, 0]
    assert graph[1].count == 1
    assert graph[1].time == 7200


def test_activity_graph_empty_range() -> None:
    """Test a start date after the end date."""
    assert build_activity_graph([], date(2024, 6, 5), date(2024, 6, 1)) == []


def test_kind_progress_rounds_half_up() -> None:
    """Test completion percentages."""
    tasks = [_done(VocabTask.create(n), "2024-06-01") for n in range(1, 12)]
    tasks += [VocabTask.create(n) for n in range(12, 23)]
    progress = kind_progress(tasks, 22)
    assert (progress.completed, progress.total, progress.percentage) == (11, 22, 50)

    # 1 of 8 is 12.5%
    tasks = [_done(VocabTask.create(1), "2024-06-01")] + [VocabTask.create(n) for n in range(2, 9)]
    assert kind_progress(tasks, 8).percentage == 13
    assert kind_progress([], 0).percentage == 0


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "00:00"),
        (59, "00:59"),
        (61, "01:01"),
        (3599, "59:59"),
        (3600, "01:00:00"),
        (3725, "01:02:05"),
    ],
)
def test_format_time(seconds: int, expected: str) -> None:
    """Test timer display formatting."""
    assert format_time(seconds) == expected


def test_format_date() -> None:
    """Test short date labels."""
    assert format_date("2024-06-10") == f"{date(2024, 6, 10):%b} 10"
    assert format_date("2024-01-05") == f"{date(2024, 1, 5):%b} 5"


if __name__ == "__main__":
    pytest.main([__file__])

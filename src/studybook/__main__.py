"""Command line entry point for the study tracker."""
import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from studybook.config import ensure_directories, settings
from studybook.logging_config import get_logger, setup_logging
from studybook.models.base import SessionLocal, init_db
from studybook.monitoring import start_monitoring
from studybook.services.activity_service import format_date, format_time
from studybook.services.error_book_service import ErrorBookService
from studybook.services.review_scheduler import format_review_date
from studybook.services.storage_service import KeyValueStore, SqlKeyValueStore
from studybook.services.study_plan_service import StudyPlanService
from studybook.services.ticker_service import ticking

logger = get_logger(__name__)

PrintFn = Callable[[str], None]


def _resolve_id(errors: ErrorBookService, value: str, category: str):
    """Match a command line id against stored ids, which may be numbers or text."""
    if value.isdigit() and errors.contains(int(value), category):
        return int(value)
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one sub-command per operation."""
    parser = argparse.ArgumentParser(prog="studybook", description="Vocabulary error book and study plan tracker")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    # error book
    subparsers.add_parser("due", help="List error book words due for review")
    subparsers.add_parser("stats", help="Show error book and review statistics")
    p_review = subparsers.add_parser("review", help="Mark an error book word as reviewed")
    p_review.add_argument("id")
    p_review.add_argument("category")
    p_attention = subparsers.add_parser("attention", help="Toggle special attention for a word")
    p_attention.add_argument("id")
    p_attention.add_argument("category")
    p_export_errors = subparsers.add_parser("export-errors", help="Export the error book as JSON")
    p_export_errors.add_argument("file", nargs="?", help="Output file (default: stdout)")
    p_import_errors = subparsers.add_parser("import-errors", help="Merge an exported error book")
    p_import_errors.add_argument("file")

    # study plan
    subparsers.add_parser("progress", help="Show study plan progress")
    subparsers.add_parser("logs", help="Show daily study logs")
    p_vocab = subparsers.add_parser("toggle-vocab", help="Toggle a vocabulary chapter")
    p_vocab.add_argument("chapter", type=int)
    p_listening = subparsers.add_parser("toggle-listening", help="Toggle a listening section")
    p_listening.add_argument("book", type=int)
    p_listening.add_argument("test", type=int)
    p_listening.add_argument("section", type=int)
    p_timer = subparsers.add_parser("timer", help="Start or pause the timer of a task")
    p_timer.add_argument("task_id")
    subparsers.add_parser("watch", help="Show the running timer until interrupted")
    p_export_plan = subparsers.add_parser("export-plan", help="Export the study plan snapshot")
    p_export_plan.add_argument("file")
    p_import_plan = subparsers.add_parser("import-plan", help="Replace the study plan with a snapshot")
    p_import_plan.add_argument("file")

    return parser


def _show_due(errors: ErrorBookService, print_fn: PrintFn) -> int:
    words = errors.list_due()
    if not words:
        print_fn("Nothing to review.")
        return 0
    for word in words:
        marker = "!" if word.is_special_attention else " "
        print_fn(
            f"{marker} [{word.category}] {word.id}: {', '.join(word.word)} - {word.meaning} "
            f"({format_review_date(word.next_review_date)})"
        )
    return 0


def _show_stats(errors: ErrorBookService, print_fn: PrintFn) -> int:
    totals = errors.stats()
    review = errors.review_stats()
    print_fn(f"Words: {totals['total']}")
    for category, count in sorted(totals["by_category"].items()):
        print_fn(f"  {category}: {count}")
    print_fn(
        f"Overdue: {review.overdue}  Today: {review.today}  Tomorrow: {review.tomorrow}  "
        f"This week: {review.this_week}  Completed: {review.completed}"
    )
    return 0


def _show_progress(plan: StudyPlanService, print_fn: PrintFn) -> int:
    print_fn(f"Day {plan.current_day()} (started {plan.start_date})")
    for kind, progress in plan.overall_progress().items():
        print_fn(f"{kind}: {progress.completed}/{progress.total} ({progress.percentage}%)")
    goals = plan.today_goals()
    print_fn("Next chapters: " + ", ".join(str(chapter) for chapter in goals["vocab"]))
    print_fn("Next sections: " + ", ".join(task.id for task in goals["listening"]))
    if plan.active_timer_id:
        print_fn(f"Timer running: {plan.active_timer_id} {format_time(plan.get_current_elapsed(plan.active_timer_id))}")
    return 0


def _show_logs(plan: StudyPlanService, print_fn: PrintFn) -> int:
    logs = plan.daily_logs()
    if not logs:
        print_fn("No completed tasks yet.")
    for log in logs:
        print_fn(f"{format_date(log.date)}: {log.summary} [{format_time(log.total_time)}]")
    return 0


async def _watch(plan: StudyPlanService, print_fn: PrintFn) -> None:
    """Print the live elapsed time until SIGINT or SIGTERM."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    def show(task_id: str, elapsed: int) -> None:
        print_fn(f"{task_id} {format_time(elapsed)}")

    async with ticking(plan, show):
        await stop_event.wait()
    logger.info("Stopped watching timer")


def dispatch(args: argparse.Namespace, store: KeyValueStore, print_fn: PrintFn = print) -> int:
    """Run one parsed command against a store and return the exit code."""
    errors = ErrorBookService(store)

    if args.command == "due":
        return _show_due(errors, print_fn)
    if args.command == "stats":
        return _show_stats(errors, print_fn)
    if args.command == "review":
        if not errors.mark_reviewed(_resolve_id(errors, args.id, args.category), args.category):
            print_fn("Word not found or review cycle already complete.")
            return 1
        print_fn("Review recorded.")
        return 0
    if args.command == "attention":
        if not errors.toggle_special_attention(_resolve_id(errors, args.id, args.category), args.category):
            print_fn("Word not found.")
            return 1
        return 0
    if args.command == "export-errors":
        text = errors.export_json()
        if args.file:
            Path(args.file).write_text(text, encoding="utf-8")
        else:
            print_fn(text)
        return 0
    if args.command == "import-errors":
        try:
            text = Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Could not read error book file %s: %s", args.file, e)
            print_fn(f"Import failed: {e}")
            return 1
        result = errors.import_json(text)
        print_fn(result.message)
        return 0 if result.success else 1

    plan = StudyPlanService(store)

    if args.command == "progress":
        return _show_progress(plan, print_fn)
    if args.command == "logs":
        return _show_logs(plan, print_fn)
    if args.command == "toggle-vocab":
        return 0 if plan.toggle_vocab_chapter(args.chapter) else 1
    if args.command == "toggle-listening":
        return 0 if plan.toggle_listening_section(args.book, args.test, args.section) else 1
    if args.command == "timer":
        if not plan.toggle_timer(args.task_id):
            print_fn(f"Unknown task: {args.task_id}")
            return 1
        return 0
    if args.command == "watch":
        if plan.active_timer_id is None:
            print_fn("No timer is running.")
            return 0
        asyncio.run(_watch(plan, print_fn))
        return 0
    if args.command == "export-plan":
        print_fn(f"Exported to {plan.export_to_file(args.file)}")
        return 0
    if args.command == "import-plan":
        if not plan.import_from_file(args.file):
            print_fn("Import failed.")
            return 1
        print_fn("Study plan imported.")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    ensure_directories()
    setup_logging(level=args.log_level)

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)

    init_db()
    db = SessionLocal()
    try:
        return dispatch(args, SqlKeyValueStore(db))
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

"""Service for tracking the vocabulary and listening study plan."""
import json
import logging
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from studybook import monitoring
from studybook.config import (
    LISTENING_BOOKS,
    SECTIONS_PER_TEST,
    TESTS_PER_BOOK,
    VOCAB_TOTAL_CHAPTERS,
    settings,
)
from studybook.models.plan_models import (
    ActivityDay,
    DailyLog,
    KindProgress,
    ListeningTask,
    TaskItem,
    TaskStatus,
    VocabTask,
)
from studybook.services.activity_service import build_activity_graph, build_daily_logs, kind_progress
from studybook.services.review_scheduler import now_ms
from studybook.services.storage_service import (
    ACTIVITY_START_DATE_KEY,
    LISTENING_TASKS_KEY,
    START_DATE_KEY,
    VOCAB_TASKS_KEY,
    KeyValueStore,
)

logger = logging.getLogger(__name__)

LISTENING_KEYS = [
    (book, test, section)
    for book in LISTENING_BOOKS
    for test in range(1, TESTS_PER_BOOK + 1)
    for section in range(1, SECTIONS_PER_TEST + 1)
]
LISTENING_TOTAL_SECTIONS = len(LISTENING_KEYS)
VOCAB_KEYS = list(range(1, VOCAB_TOTAL_CHAPTERS + 1))

EXPORT_VERSION = "1.0"


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:  # Feb 29
        return day.replace(year=day.year - years, day=28)


def _as_date(value: Union[date, str]) -> date:
    return value if isinstance(value, date) else date.fromisoformat(value)


class StudyPlanService:
    """Service for the fixed study plan: task completion, timers and derived views."""

    def __init__(self, store: KeyValueStore, today: Optional[date] = None):
        """Load the plan from the store, repairing anything inconsistent."""
        self.store = store
        self.active_timer_id: Optional[str] = None
        today = today or date.today()

        self.start_date: str = self._load_date(START_DATE_KEY, lambda: today.isoformat())
        self.activity_graph_start_date: str = self._load_date(
            ACTIVITY_START_DATE_KEY,
            lambda: _years_before(date.fromisoformat(self.start_date), settings.plan.activity_lookback_years).isoformat(),
        )

        self.vocab_tasks: List[VocabTask] = self._load_tasks(VOCAB_TASKS_KEY, VocabTask, VOCAB_KEYS)
        self.listening_tasks: List[ListeningTask] = self._load_tasks(LISTENING_TASKS_KEY, ListeningTask, LISTENING_KEYS)

        if self._restore_active_timer():
            self._save()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------
    def _load_date(self, key: str, default: Callable[[], str]) -> str:
        value = self.store.get_json(key)
        if isinstance(value, str):
            try:
                date.fromisoformat(value)
                return value
            except ValueError:
                logger.warning("Ignoring invalid date %r stored under %s", value, key)
        value = default()
        self.store.set_json(key, value)
        return value

    def _load_tasks(self, key: str, task_cls: type, canonical_keys: Sequence) -> List:
        data = self.store.get_json(key)
        if not isinstance(data, list):
            if data is not None:
                logger.warning("Stored %s is not a list, rebuilding it", key)
            tasks = [task_cls.create(*self._key_args(k)) for k in canonical_keys]
            self.store.set_json(key, [task.to_dict() for task in tasks])
            return tasks

        tasks = []
        for item in data:
            try:
                tasks.append(task_cls.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed task in %s: %s", key, e)

        if not self._matches_canonical(tasks, canonical_keys):
            tasks = self._rebuild(tasks, task_cls, canonical_keys, key)
            self.store.set_json(key, [task.to_dict() for task in tasks])
        return tasks

    @staticmethod
    def _matches_canonical(tasks: Sequence[TaskItem], canonical_keys: Sequence) -> bool:
        return [task.key for task in tasks] == list(canonical_keys)

    @staticmethod
    def _key_args(key: Any) -> tuple:
        return key if isinstance(key, tuple) else (key,)

    def _rebuild(self, tasks: List, task_cls: type, canonical_keys: Sequence, label: str) -> List:
        """Merge stored tasks into the canonical list, creating any that are missing."""
        existing = {task.key: task for task in tasks}
        rebuilt = []
        created = 0
        for key in canonical_keys:
            task = existing.pop(key, None)
            if task is None:
                task = task_cls.create(*self._key_args(key))
                created += 1
            rebuilt.append(task)

        if existing:
            logger.warning("Dropped %d unknown tasks from %s: %s", len(existing), label, sorted(existing))
        logger.info("Repaired %s: kept %d tasks, created %d", label, len(rebuilt) - created, created)
        return rebuilt

    def _restore_active_timer(self) -> bool:
        """Resume the most recently started timer and stop any others.

        Returns whether any task was changed.
        """
        running = [task for task in self._all_tasks() if task.timer_start_time is not None]
        self.active_timer_id = None
        if not running:
            monitoring.active_timers.set(0)
            return False

        latest = max(running, key=lambda task: task.timer_start_time)
        for task in running:
            if task is not latest:
                self._fold_elapsed(task, latest.timer_start_time)
        self.active_timer_id = latest.id
        monitoring.active_timers.set(1)
        return len(running) > 1

    def _save(self) -> None:
        self.store.set_json(VOCAB_TASKS_KEY, [task.to_dict() for task in self.vocab_tasks])
        self.store.set_json(LISTENING_TASKS_KEY, [task.to_dict() for task in self.listening_tasks])

    def set_start_date(self, value: Union[date, str]) -> None:
        """Change the day the plan started."""
        self.start_date = _as_date(value).isoformat()
        self.store.set_json(START_DATE_KEY, self.start_date)

    def set_activity_graph_start_date(self, value: Union[date, str]) -> None:
        """Change the first day shown in the activity graph."""
        self.activity_graph_start_date = _as_date(value).isoformat()
        self.store.set_json(ACTIVITY_START_DATE_KEY, self.activity_graph_start_date)

    # ------------------------------------------------------------------
    # Task lookup and completion
    # ------------------------------------------------------------------
    def _all_tasks(self) -> List[TaskItem]:
        return [*self.vocab_tasks, *self.listening_tasks]

    def get_task(self, task_id: str) -> Optional[TaskItem]:
        """Get a task of either kind by its id."""
        return next((task for task in self._all_tasks() if task.id == task_id), None)

    def toggle_vocab_chapter(self, chapter: int, today: Optional[date] = None, now: Optional[int] = None) -> bool:
        """Flip a vocabulary chapter between pending and completed."""
        task = next((t for t in self.vocab_tasks if t.chapter == chapter), None)
        if not task:
            return False
        self._toggle(task, today, now)
        return True

    def toggle_listening_section(
        self,
        book: int,
        test: int,
        section: int,
        today: Optional[date] = None,
        now: Optional[int] = None,
    ) -> bool:
        """Flip a listening section between pending and completed."""
        task = next((t for t in self.listening_tasks if t.key == (book, test, section)), None)
        if not task:
            return False
        self._toggle(task, today, now)
        return True

    def _toggle(self, task: TaskItem, today: Optional[date], now: Optional[int]) -> None:
        if self.active_timer_id == task.id:
            self._switch_active(None, now if now is not None else now_ms())

        if task.is_completed:
            task.status = TaskStatus.PENDING
            task.completed_at = None
            logger.info("Task %s marked pending", task.id)
        else:
            task.status = TaskStatus.COMPLETED
            task.completed_at = (today or date.today()).isoformat()
            monitoring.tasks_completed.labels(kind=task.kind.value).inc()
            logger.info("Task %s completed on %s", task.id, task.completed_at)

        self._save()

    def reset_all(self, now: Optional[int] = None) -> None:
        """Return every task to pending and forget all recorded time."""
        self._switch_active(None, now if now is not None else now_ms())
        for task in self._all_tasks():
            task.status = TaskStatus.PENDING
            task.completed_at = None
            task.time_spent = None
            task.timer_start_time = None
        self._save()
        logger.info("Study plan reset")

    # ------------------------------------------------------------------
    # Active timer
    # ------------------------------------------------------------------
    def _fold_elapsed(self, task: TaskItem, now: int) -> None:
        if task.timer_start_time is None:
            return
        elapsed = max(0, (now - task.timer_start_time) // 1000)
        task.time_spent = (task.time_spent or 0) + elapsed
        task.timer_start_time = None
        monitoring.timer_seconds.labels(kind=task.kind.value).inc(elapsed)
        logger.debug("Timer for %s stopped after %d seconds", task.id, elapsed)

    def _switch_active(self, task_id: Optional[str], now: int) -> None:
        """Make task_id the only running timer, or stop all timers when None."""
        if self.active_timer_id is not None and self.active_timer_id != task_id:
            current = self.get_task(self.active_timer_id)
            if current:
                self._fold_elapsed(current, now)
            self.active_timer_id = None

        if task_id is not None:
            task = self.get_task(task_id)
            if task.timer_start_time is None:
                task.timer_start_time = now
            self.active_timer_id = task_id

        monitoring.active_timers.set(1 if self.active_timer_id else 0)

    def start_timer(self, task_id: str, now: Optional[int] = None) -> bool:
        """Start timing a task, stopping whichever task was running."""
        if self.get_task(task_id) is None:
            return False
        self._switch_active(task_id, now if now is not None else now_ms())
        self._save()
        logger.info("Timer started for %s", task_id)
        return True

    def pause_timer(self, now: Optional[int] = None) -> None:
        """Stop the running timer and add its elapsed time to the task."""
        if self.active_timer_id is None:
            return
        self._switch_active(None, now if now is not None else now_ms())
        self._save()

    def stop_timer(self, task_id: str, now: Optional[int] = None) -> None:
        """Stop the timer only if it is running for the given task."""
        if self.active_timer_id == task_id:
            self.pause_timer(now)

    def toggle_timer(self, task_id: str, now: Optional[int] = None) -> bool:
        """Pause the task's timer if it is running, otherwise start it."""
        if self.active_timer_id == task_id:
            self.pause_timer(now)
            return True
        return self.start_timer(task_id, now)

    def get_current_elapsed(self, task_id: str, now: Optional[int] = None) -> int:
        """Seconds spent on a task, including the running timer."""
        task = self.get_task(task_id)
        if not task:
            return 0

        total = task.time_spent or 0
        if self.active_timer_id == task_id and task.timer_start_time is not None:
            if now is None:
                now = now_ms()
            total += max(0, (now - task.timer_start_time) // 1000)
        return total

    # ------------------------------------------------------------------
    # Export and import
    # ------------------------------------------------------------------
    def export_data(self, now: Optional[int] = None) -> str:
        """Snapshot the whole plan as a JSON document."""
        export_time = datetime.fromtimestamp((now if now is not None else now_ms()) / 1000, UTC)
        data = {
            "version": EXPORT_VERSION,
            "exportDate": export_time.isoformat(),
            "startDate": self.start_date,
            "vocabTasks": [task.to_dict() for task in self.vocab_tasks],
            "listeningTasks": [task.to_dict() for task in self.listening_tasks],
        }
        return json.dumps(data, ensure_ascii=False, indent=2)

    def export_to_file(self, path: Union[Path, str], now: Optional[int] = None) -> Path:
        """Write a snapshot to a file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.export_data(now), encoding="utf-8")
        logger.info("Study plan exported to %s", target)
        return target

    def import_data(self, text: str, now: Optional[int] = None) -> bool:
        """Replace the plan with a snapshot; nothing changes unless the whole snapshot is valid."""
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("snapshot must be an object")
            if not isinstance(data.get("vocabTasks"), list) or not isinstance(data.get("listeningTasks"), list):
                raise ValueError("snapshot must contain vocabTasks and listeningTasks lists")

            vocab_tasks = [VocabTask.from_dict(item) for item in data["vocabTasks"]]
            listening_tasks = [ListeningTask.from_dict(item) for item in data["listeningTasks"]]
            start_date = data.get("startDate")
            if start_date:
                start_date = date.fromisoformat(start_date).isoformat()
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error("Failed to import study plan: %s", e)
            monitoring.imports.labels(target="study_plan", result="failure").inc()
            monitoring.error_count.labels(error_type="plan_import").inc()
            return False

        self.pause_timer(now)

        if start_date:
            self.set_start_date(start_date)
        if not self._matches_canonical(vocab_tasks, VOCAB_KEYS):
            vocab_tasks = self._rebuild(vocab_tasks, VocabTask, VOCAB_KEYS, VOCAB_TASKS_KEY)
        if not self._matches_canonical(listening_tasks, LISTENING_KEYS):
            listening_tasks = self._rebuild(listening_tasks, ListeningTask, LISTENING_KEYS, LISTENING_TASKS_KEY)
        self.vocab_tasks = vocab_tasks
        self.listening_tasks = listening_tasks
        self._restore_active_timer()
        self._save()

        monitoring.imports.labels(target="study_plan", result="success").inc()
        logger.info("Study plan imported")
        return True

    def import_from_file(self, path: Union[Path, str], now: Optional[int] = None) -> bool:
        """Import a snapshot from a file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Could not read study plan snapshot %s: %s", path, e)
            return False
        return self.import_data(text, now)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def current_day(self, today: Optional[date] = None) -> int:
        """Day number of the plan, starting at 1 on the start date."""
        today = today or date.today()
        return max(1, (today - date.fromisoformat(self.start_date)).days + 1)

    def today_goals(self) -> Dict[str, List]:
        """Chapters and sections to work on next, based on the daily goals."""
        completed_vocab = sum(1 for task in self.vocab_tasks if task.is_completed)
        last_chapter = min(completed_vocab + settings.plan.vocab_daily_goal, VOCAB_TOTAL_CHAPTERS)
        pending_listening = [task for task in self.listening_tasks if not task.is_completed]
        return {
            "vocab": list(range(completed_vocab + 1, last_chapter + 1)),
            "listening": pending_listening[:settings.plan.listening_daily_goal],
        }

    def today_completed(self, today: Optional[date] = None) -> Dict[str, int]:
        """Number of tasks of each kind completed today."""
        today_str = (today or date.today()).isoformat()
        return {
            "vocab": sum(1 for t in self.vocab_tasks if t.is_completed and t.completed_at == today_str),
            "listening": sum(1 for t in self.listening_tasks if t.is_completed and t.completed_at == today_str),
        }

    def listening_by_book(self) -> Dict[int, Dict[int, List[ListeningTask]]]:
        """Listening tasks grouped by book, then by test."""
        grouped: Dict[int, Dict[int, List[ListeningTask]]] = {
            book: {test: [] for test in range(1, TESTS_PER_BOOK + 1)} for book in LISTENING_BOOKS
        }
        for task in self.listening_tasks:
            grouped[task.book][task.test].append(task)
        return grouped

    def overall_progress(self) -> Dict[str, KindProgress]:
        """Completion percentage for each task kind."""
        return {
            "vocab": kind_progress(self.vocab_tasks, VOCAB_TOTAL_CHAPTERS),
            "listening": kind_progress(self.listening_tasks, LISTENING_TOTAL_SECTIONS),
        }

    def daily_logs(self) -> List[DailyLog]:
        """Per-day completion logs, newest first."""
        return build_daily_logs(self.vocab_tasks, self.listening_tasks)

    def activity_graph_data(self, today: Optional[date] = None) -> List[ActivityDay]:
        """Heatmap cells from the activity graph start date through today."""
        start = date.fromisoformat(self.activity_graph_start_date)
        return build_activity_graph(self.daily_logs(), start, today or date.today())

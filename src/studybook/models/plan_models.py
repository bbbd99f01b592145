"""Models for study plan tasks and their derived views."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskStatus(Enum):
    """Completion state of a study task."""
    PENDING = "pending"
    COMPLETED = "completed"


class TaskKind(Enum):
    """Kind of study task, used for metrics and progress."""
    VOCAB = "vocab"
    LISTENING = "listening"


@dataclass(kw_only=True)
class TaskItem:
    """Common state of every study task."""
    id: str
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[str] = None  # YYYY-MM-DD
    time_spent: Optional[int] = None  # seconds
    timer_start_time: Optional[int] = None  # ms timestamp

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    def _base_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "status": self.status.value}
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        if self.time_spent is not None:
            data["timeSpent"] = self.time_spent
        if self.timer_start_time is not None:
            data["timerStartTime"] = self.timer_start_time
        return data

    @staticmethod
    def _base_fields(data: Dict[str, Any]) -> Dict[str, Any]:
        time_spent = data.get("timeSpent")
        timer_start = data.get("timerStartTime")
        return {
            "id": str(data["id"]),
            "status": TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            "completed_at": data.get("completedAt"),
            "time_spent": int(time_spent) if time_spent is not None else None,
            "timer_start_time": int(timer_start) if timer_start is not None else None,
        }


@dataclass(kw_only=True)
class VocabTask(TaskItem):
    """One vocabulary chapter."""
    chapter: int

    kind = TaskKind.VOCAB

    @property
    def key(self) -> int:
        return self.chapter

    @classmethod
    def create(cls, chapter: int) -> "VocabTask":
        """Create the canonical pending task for a chapter."""
        return cls(id=f"vocab-ch{chapter}", chapter=chapter)

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data["chapter"] = self.chapter
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VocabTask":
        return cls(chapter=int(data["chapter"]), **cls._base_fields(data))


@dataclass(kw_only=True)
class ListeningTask(TaskItem):
    """One listening section of a Cambridge test."""
    book: int
    test: int
    section: int

    kind = TaskKind.LISTENING

    @property
    def key(self) -> tuple:
        return (self.book, self.test, self.section)

    @classmethod
    def create(cls, book: int, test: int, section: int) -> "ListeningTask":
        """Create the canonical pending task for a section."""
        return cls(
            id=f"listening-c{book}t{test}s{section}",
            book=book,
            test=test,
            section=section,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({"book": self.book, "test": self.test, "section": self.section})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListeningTask":
        return cls(
            book=int(data["book"]),
            test=int(data["test"]),
            section=int(data["section"]),
            **cls._base_fields(data),
        )


@dataclass
class DailyLog:
    """Tasks completed on one calendar day."""
    date: str
    vocab: List[str] = field(default_factory=list)  # task ids
    listening: List[str] = field(default_factory=list)  # task ids
    summary: str = ""
    total_time: int = 0  # seconds

    @property
    def task_count(self) -> int:
        return len(self.vocab) + len(self.listening)


@dataclass
class ActivityDay:
    """One cell of the activity heatmap."""
    date: str
    level: int
    count: int
    time: int  # seconds


@dataclass
class KindProgress:
    """Completion progress for one task kind."""
    completed: int
    total: int
    percentage: int

"""Models for error book entries and review scheduling."""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class ReviewRecord:
    """One completed review of an error book entry."""
    review_date: int  # ms timestamp
    level: int  # 0-6, position in the interval table

    def to_dict(self) -> Dict[str, Any]:
        return {"reviewDate": self.review_date, "level": self.level}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewRecord":
        return cls(review_date=int(data["reviewDate"]), level=int(data["level"]))


@dataclass
class ErrorWord:
    """A vocabulary item the user got wrong, identified by (id, category)."""
    id: Any
    word: List[str]
    category: str
    pos: str = ""
    meaning: str = ""
    example: str = ""
    extra: str = ""
    added_at: int = 0  # ms timestamp
    review_records: Optional[List[ReviewRecord]] = None
    next_review_date: Optional[int] = None  # 0 means the review cycle is complete
    is_special_attention: Optional[bool] = None

    @property
    def key(self) -> tuple:
        """Identity of the entry inside the error book."""
        return (self.id, self.category)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted camelCase field names."""
        data: Dict[str, Any] = {
            "id": self.id,
            "word": list(self.word),
            "pos": self.pos,
            "meaning": self.meaning,
            "example": self.example,
            "extra": self.extra,
            "category": self.category,
            "addedAt": self.added_at,
        }
        if self.review_records is not None:
            data["reviewRecords"] = [record.to_dict() for record in self.review_records]
        if self.next_review_date is not None:
            data["nextReviewDate"] = self.next_review_date
        if self.is_special_attention is not None:
            data["isSpecialAttention"] = self.is_special_attention
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorWord":
        """Build an entry from its persisted form."""
        word = data.get("word") or []
        if isinstance(word, str):
            word = [word]
        records = data.get("reviewRecords")
        return cls(
            id=data["id"],
            word=list(word),
            category=data["category"],
            pos=data.get("pos", ""),
            meaning=data.get("meaning", ""),
            example=data.get("example", ""),
            extra=data.get("extra", ""),
            added_at=int(data.get("addedAt") or 0),
            review_records=[ReviewRecord.from_dict(r) for r in records] if records is not None else None,
            next_review_date=data.get("nextReviewDate"),
            is_special_attention=data.get("isSpecialAttention"),
        )


@dataclass
class ImportResult:
    """Outcome of an error book import."""
    success: bool
    message: str
    count: int = 0
    skipped: int = 0


@dataclass
class ReviewStats:
    """Review schedule buckets for the whole error book."""
    overdue: int = 0
    today: int = 0
    tomorrow: int = 0
    this_week: int = 0
    completed: int = 0
    total: int = 0

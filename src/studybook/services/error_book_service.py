"""Service for managing the vocabulary error book."""
import json
import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List, Optional

from studybook import monitoring
from studybook.config import settings
from studybook.models.error_book_models import ErrorWord, ImportResult, ReviewRecord, ReviewStats
from studybook.services.review_scheduler import (
    DAY_MS,
    MAX_REVIEWS,
    REVIEW_COMPLETE,
    calculate_next_review_date,
    day_start_ms,
    local_date,
    now_ms,
    review_levels,
)
from studybook.services.storage_service import ERROR_BOOK_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class ErrorBookService:
    """Service for managing error book entries and their review schedule."""

    def __init__(self, store: KeyValueStore):
        """Initialize the service with a key-value store."""
        self.store = store

    def list_words(self) -> List[ErrorWord]:
        """Get all entries in insertion order."""
        data = self.store.get_json(ERROR_BOOK_KEY, [])
        if not isinstance(data, list):
            logger.warning("Stored error book is not a list, ignoring it")
            return []
        words = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Skipping error book entry that is not an object: %r", item)
                continue
            try:
                words.append(ErrorWord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed error book entry %r: %s", item, e)
        return words

    def _save(self, words: List[ErrorWord]) -> None:
        self.store.set_json(ERROR_BOOK_KEY, [word.to_dict() for word in words])

    def _find(self, words: List[ErrorWord], word_id: Any, category: str) -> Optional[ErrorWord]:
        return next((w for w in words if w.id == word_id and w.category == category), None)

    def add(self, word: ErrorWord, now: Optional[int] = None) -> bool:
        """Add an entry unless one with the same id and category exists."""
        words = self.list_words()
        if self._find(words, word.id, word.category):
            logger.debug("Word %s/%s already in error book", word.category, word.id)
            return False

        word.added_at = now if now is not None else now_ms()
        words.append(word)
        self._save(words)
        monitoring.words_added.labels(category=word.category).inc()
        logger.info("Added word %s/%s to error book", word.category, word.id)
        return True

    def remove(self, word_id: Any, category: str) -> None:
        """Remove an entry from the error book."""
        words = self.list_words()
        remaining = [w for w in words if not (w.id == word_id and w.category == category)]
        self._save(remaining)
        if len(remaining) != len(words):
            logger.info("Removed word %s/%s from error book", category, word_id)

    def contains(self, word_id: Any, category: str) -> bool:
        """Check whether an entry is in the error book."""
        return self._find(self.list_words(), word_id, category) is not None

    def clear(self) -> None:
        """Drop the whole error book."""
        self.store.remove(ERROR_BOOK_KEY)
        logger.info("Error book cleared")

    def export_json(self) -> str:
        """Export all entries as a JSON array."""
        return json.dumps([word.to_dict() for word in self.list_words()], ensure_ascii=False, indent=2)

    def import_json(self, text: str) -> ImportResult:
        """Merge entries from a JSON array, skipping ones already present."""
        try:
            data = json.loads(text)
            if not isinstance(data, list):
                return self._import_failed("Invalid import format: expected a list")

            for item in data:
                if not isinstance(item, dict) or not item.get("id") or not item.get("word") or not item.get("category"):
                    return self._import_failed("Invalid import format: missing required fields")

            incoming = [ErrorWord.from_dict(item) for item in data]
        except (ValueError, TypeError, KeyError) as e:
            return self._import_failed(f"Import failed: {e}")

        words = self.list_words()
        seen_keys = {w.key for w in words}
        new_words = []
        for word in incoming:
            if word.key in seen_keys:
                continue
            seen_keys.add(word.key)
            new_words.append(word)
        skipped = len(incoming) - len(new_words)

        self._save(words + new_words)
        monitoring.imports.labels(target="error_book", result="success").inc()
        logger.info("Imported %d words into error book, %d skipped", len(new_words), skipped)
        return ImportResult(
            success=True,
            message=f"Imported {len(new_words)} words, {skipped} already exist",
            count=len(new_words),
            skipped=skipped,
        )

    def _import_failed(self, message: str) -> ImportResult:
        logger.warning("Error book import rejected: %s", message)
        monitoring.imports.labels(target="error_book", result="failure").inc()
        return ImportResult(success=False, message=message, count=0)

    def stats(self) -> Dict[str, Any]:
        """Get entry totals overall and per category."""
        words = self.list_words()
        return {
            "total": len(words),
            "by_category": dict(Counter(w.category for w in words)),
        }

    def mark_reviewed(self, word_id: Any, category: str, now: Optional[int] = None) -> bool:
        """Record a review and reschedule the entry."""
        words = self.list_words()
        word = self._find(words, word_id, category)
        if not word:
            return False

        if word.review_records is None:
            word.review_records = []

        level = review_levels(word.review_records)
        if level >= MAX_REVIEWS:
            return False

        word.review_records.append(ReviewRecord(review_date=now if now is not None else now_ms(), level=level))
        word.next_review_date = calculate_next_review_date(word.added_at, word.review_records)

        self._save(words)
        monitoring.reviews_marked.labels(level=str(level)).inc()
        logger.info("Reviewed %s/%s at level %d", category, word_id, level)
        return True

    def toggle_special_attention(self, word_id: Any, category: str) -> bool:
        """Flip the special attention flag of an entry."""
        words = self.list_words()
        word = self._find(words, word_id, category)
        if not word:
            return False

        word.is_special_attention = not word.is_special_attention
        self._save(words)
        return True

    def is_special_attention(self, word_id: Any, category: str) -> bool:
        """Check whether an entry is flagged for special attention."""
        word = self._find(self.list_words(), word_id, category)
        return bool(word and word.is_special_attention)

    def _due_date(self, word: ErrorWord) -> int:
        if word.next_review_date is None:
            word.next_review_date = calculate_next_review_date(word.added_at, word.review_records)
        return word.next_review_date

    def list_due(self, now: Optional[int] = None) -> List[ErrorWord]:
        """Get entries due for review, soonest first."""
        if now is None:
            now = now_ms()
        horizon = now + int(timedelta(minutes=settings.review.lookahead_minutes).total_seconds() * 1000)

        due = [
            word for word in self.list_words()
            if self._due_date(word) != REVIEW_COMPLETE and word.next_review_date <= horizon
        ]
        return sorted(due, key=lambda w: w.next_review_date)

    def review_stats(self, now: Optional[int] = None) -> ReviewStats:
        """Bucket entries by due day relative to today."""
        if now is None:
            now = now_ms()
        today_start = day_start_ms(local_date(now))
        tomorrow_start = today_start + DAY_MS
        day_after_start = tomorrow_start + DAY_MS
        week_end = today_start + 7 * DAY_MS

        words = self.list_words()
        stats = ReviewStats(total=len(words))
        for word in words:
            due = self._due_date(word)
            if due == REVIEW_COMPLETE:
                stats.completed += 1
            elif due < today_start:
                stats.overdue += 1
            elif due < tomorrow_start:
                stats.today += 1
            elif due < week_end:
                stats.this_week += 1
                if due < day_after_start:
                    stats.tomorrow += 1
        return stats

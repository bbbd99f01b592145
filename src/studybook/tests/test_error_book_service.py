"""Tests for error book service."""
import json
from datetime import datetime
from typing import Callable

import pytest

from studybook.models.error_book_models import ErrorWord
from studybook.services.error_book_service import ErrorBookService
from studybook.services.review_scheduler import DAY_MS, REVIEW_COMPLETE, to_ms
from studybook.services.storage_service import ERROR_BOOK_KEY, MemoryKeyValueStore

T = to_ms(datetime(2024, 6, 10, 9, 0))


@pytest.fixture
def service(store: MemoryKeyValueStore) -> ErrorBookService:
    """Create an error book service instance."""
    return ErrorBookService(store)


def test_add_stamps_added_at(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test adding a word."""
    assert service.add(make_word(1, "A"), now=T) is True

    words = service.list_words()
    assert len(words) == 1
    assert words[0].added_at == T
    assert service.contains(1, "A")


def test_add_duplicate_rejected(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test that the same (id, category) pair is only stored once."""
    assert service.add(make_word(1, "A"), now=T) is True
    assert service.add(make_word(1, "A"), now=T + 1000) is False

    words = service.list_words()
    assert len(words) == 1
    assert words[0].added_at == T


def test_same_id_in_other_category_is_distinct(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test that identity includes the category."""
    assert service.add(make_word(1, "A"))
    assert service.add(make_word(1, "B"))
    assert len(service.list_words()) == 2

    service.remove(1, "A")
    assert not service.contains(1, "A")
    assert service.contains(1, "B")


def test_clear(service: ErrorBookService, store: MemoryKeyValueStore, make_word: Callable[..., ErrorWord]) -> None:
    """Test clearing the error book."""
    service.add(make_word())
    service.clear()
    assert store.get(ERROR_BOOK_KEY) is None
    assert service.list_words() == []


def test_corrupt_storage_reads_as_empty(service: ErrorBookService, store: MemoryKeyValueStore) -> None:
    """Test that unparsable data never raises."""
    store.set(ERROR_BOOK_KEY, "[{broken")
    assert service.list_words() == []
    assert service.list_due(now=T) == []


def test_non_object_entries_are_skipped(
    service: ErrorBookService, store: MemoryKeyValueStore, make_word: Callable[..., ErrorWord]
) -> None:
    """Test that stored entries which are not objects are ignored."""
    store.set_json(ERROR_BOOK_KEY, [None, 5, "word", make_word(1, "A").to_dict()])

    assert [w.id for w in service.list_words()] == [1]
    assert service.contains(1, "A")
    assert service.stats()["total"] == 1
    assert service.add(make_word(2, "A"), now=T) is True


def test_stats_by_category(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test totals per category."""
    service.add(make_word(1, "A"))
    service.add(make_word(2, "A"))
    service.add(make_word(3, "B"))

    assert service.stats() == {"total": 3, "by_category": {"A": 2, "B": 1}}


def test_mark_reviewed_scenario(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test the first review of a word."""
    service.add(make_word(1, "A"), now=T)

    assert service.mark_reviewed(1, "A", now=T + DAY_MS) is True

    word = service.list_words()[0]
    assert [r.to_dict() for r in word.review_records] == [{"reviewDate": T + DAY_MS, "level": 0}]
    assert word.next_review_date == T + DAY_MS + 2 * DAY_MS


def test_mark_reviewed_missing_word(service: ErrorBookService) -> None:
    """Test reviewing a word that is not in the error book."""
    assert service.mark_reviewed(99, "A", now=T) is False


def test_mark_reviewed_until_complete(
    service: ErrorBookService, store: MemoryKeyValueStore, make_word: Callable[..., ErrorWord]
) -> None:
    """Test that a word stops being scheduled after seven reviews."""
    service.add(make_word(1, "A"), now=T)
    for i in range(7):
        assert service.mark_reviewed(1, "A", now=T + (i + 1) * DAY_MS) is True

    word = service.list_words()[0]
    assert [r.level for r in word.review_records] == list(range(7))
    assert word.next_review_date == REVIEW_COMPLETE

    before = store.get(ERROR_BOOK_KEY)
    assert service.mark_reviewed(1, "A", now=T + 100 * DAY_MS) is False
    assert store.get(ERROR_BOOK_KEY) == before

    assert service.list_due(now=T + 1000 * DAY_MS) == []


def test_list_due(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test due words, the one hour lookahead and ordering."""
    now = T + 5 * DAY_MS
    service.add(make_word(1, "A"), now=now - DAY_MS + 30 * 60 * 1000)  # due in 30 minutes
    service.add(make_word(2, "A"), now=now - 3 * DAY_MS)  # overdue by two days
    service.add(make_word(3, "A"), now=now - DAY_MS + 2 * 60 * 60 * 1000)  # due in 2 hours
    service.add(make_word(4, "A"), now=now - 2 * DAY_MS)  # overdue by one day
    service.add(make_word(5, "A"), now=now - DAY_MS + 60 * 60 * 1000)  # due in exactly one hour

    due = service.list_due(now=now)
    assert [w.id for w in due] == [2, 4, 1, 5]
    assert all(w.next_review_date == w.added_at + DAY_MS for w in due)


def test_toggle_special_attention(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test flipping the special attention flag."""
    service.add(make_word(1, "A"))
    assert service.is_special_attention(1, "A") is False

    assert service.toggle_special_attention(1, "A") is True
    assert service.is_special_attention(1, "A") is True

    assert service.toggle_special_attention(1, "A") is True
    assert service.is_special_attention(1, "A") is False

    assert service.toggle_special_attention(2, "A") is False


def test_export_json(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test exporting uses the persisted field names."""
    service.add(make_word(1, "A"), now=T)
    service.mark_reviewed(1, "A", now=T + DAY_MS)

    exported = json.loads(service.export_json())
    assert len(exported) == 1
    assert exported[0]["addedAt"] == T
    assert exported[0]["reviewRecords"] == [{"reviewDate": T + DAY_MS, "level": 0}]
    assert exported[0]["nextReviewDate"] == T + 3 * DAY_MS


def test_import_skips_repeated_entries(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test that the same (id, category) pair listed twice is imported once."""
    entry = make_word(1, "A").to_dict()

    result = service.import_json(json.dumps([entry, entry]))

    assert result.success is True
    assert result.count == 1
    assert result.skipped == 1
    assert result.message == "Imported 1 words, 1 already exist"
    assert len(service.list_words()) == 1


def test_import_merges_and_reports_counts(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test that already present words are skipped."""
    service.add(make_word(1, "A"), now=T)
    payload = json.dumps([
        make_word(1, "A").to_dict(),
        make_word(2, "A").to_dict(),
        make_word(1, "B").to_dict(),
    ])

    result = service.import_json(payload)

    assert result.success is True
    assert result.count == 2
    assert result.skipped == 1
    assert result.message == "Imported 2 words, 1 already exist"
    assert len(service.list_words()) == 3
    # The existing entry is kept as it was
    assert service.list_words()[0].added_at == T


@pytest.mark.parametrize(
    "payload, message",
    [
        ('{"id": 1}', "Invalid import format: expected a list"),
        ('[{"id": 1, "word": ["a"]}]', "Invalid import format: missing required fields"),
        ('[{"id": 1, "word": [], "category": "A"}]', "Invalid import format: missing required fields"),
        ('["not an object"]', "Invalid import format: missing required fields"),
    ],
)
def test_import_rejects_invalid_payload(
    service: ErrorBookService, make_word: Callable[..., ErrorWord], payload: str, message: str
) -> None:
    """Test structural validation of imports."""
    service.add(make_word(1, "A"))

    result = service.import_json(payload)

    assert result.success is False
    assert result.count == 0
    assert result.message == message
    assert len(service.list_words()) == 1


def test_import_invalid_json(service: ErrorBookService) -> None:
    """Test that malformed JSON is reported, not raised."""
    result = service.import_json("[{")
    assert result.success is False
    assert result.count == 0
    assert result.message.startswith("Import failed:")


def test_review_stats_buckets(service: ErrorBookService, make_word: Callable[..., ErrorWord]) -> None:
    """Test day-aligned review buckets."""
    service.add(make_word(1, "A"), now=T - 2 * DAY_MS)  # due yesterday
    service.add(make_word(2, "A"), now=T - DAY_MS)  # due today at 09:00
    service.add(make_word(3, "A"), now=T)  # due tomorrow
    service.add(make_word(4, "A"), now=T + 2 * DAY_MS)  # due in three days
    service.add(make_word(5, "A"), now=T + 10 * DAY_MS)  # due in eleven days
    service.add(make_word(6, "A"), now=T)
    for i in range(7):
        service.mark_reviewed(6, "A", now=T + i * DAY_MS)

    stats = service.review_stats(now=T)

    assert stats.overdue == 1
    assert stats.today == 1
    assert stats.tomorrow == 1
    assert stats.this_week == 2
    assert stats.completed == 1
    assert stats.total == 6


if __name__ == "__main__":
    pytest.main([__file__])

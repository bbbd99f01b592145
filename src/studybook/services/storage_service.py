"""Key-value persistence for the study tracker collections."""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from studybook import monitoring
from studybook.models.models import KeyValueEntry

logger = logging.getLogger(__name__)

ERROR_BOOK_KEY = "vocabulary_error_book"
START_DATE_KEY = "study-plan-start-date"
VOCAB_TASKS_KEY = "study-plan-vocab-tasks"
LISTENING_TASKS_KEY = "study-plan-listening-tasks"
ACTIVITY_START_DATE_KEY = "activity-graph-start-date"


class KeyValueStore(ABC):
    """Storage port: string keys mapped to JSON-encoded strings."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the raw value for a key, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a raw value under a key."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key if present."""

    def get_json(self, key: str, default: Any = None) -> Any:
        """Decode the value under a key, falling back to default when missing or corrupt."""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning("Could not decode stored value for %s: %s", key, e)
            monitoring.error_count.labels(error_type="corrupt_storage").inc()
            return default

    def set_json(self, key: str, value: Any) -> None:
        """Encode a value as JSON and store it."""
        self.set(key, json.dumps(value, ensure_ascii=False))


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SqlKeyValueStore(KeyValueStore):
    """Store backed by the kv_entries table; every write is committed immediately."""

    def __init__(self, db: Session):
        """Initialize the store with a database session."""
        self.db = db

    def get(self, key: str) -> Optional[str]:
        monitoring.storage_operations.labels(operation_type="get").inc()
        entry = self.db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
        return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        monitoring.storage_operations.labels(operation_type="set").inc()
        entry = self.db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()
        if entry:
            entry.value = value
        else:
            self.db.add(KeyValueEntry(key=key, value=value))
        self.db.commit()
        logger.debug("Stored %d characters under %s", len(value), key)

    def remove(self, key: str) -> None:
        monitoring.storage_operations.labels(operation_type="remove").inc()
        self.db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
        self.db.commit()

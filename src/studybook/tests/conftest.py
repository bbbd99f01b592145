"""Test configuration."""
import os
from typing import Callable, Generator

import pytest
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

# Import after environment setup
from studybook.models.base import SessionLocal, init_db
from studybook.models.error_book_models import ErrorWord
from studybook.models.models import KeyValueEntry
from studybook.services.storage_service import MemoryKeyValueStore

fake = Faker()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    """Create an empty in-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def db() -> Generator:
    """Create a database session on a clean kv_entries table."""
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.query(KeyValueEntry).delete()
        db.commit()
        db.close()


@pytest.fixture
def make_word() -> Callable[..., ErrorWord]:
    """Build error book entries with fake content."""
    def factory(word_id: int = None, category: str = "IELTS") -> ErrorWord:
        return ErrorWord(
            id=word_id if word_id is not None else fake.unique.random_int(min=1, max=100000),
            word=[fake.word()],
            category=category,
            pos="n.",
            meaning=fake.word(),
            example=fake.sentence(),
        )
    return factory

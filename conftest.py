from datetime import datetime, timedelta

import pytest

from lending.catalog import Catalog
from lending.cleanup import CreatedRecords, purge
from lending.database import Database
from lending.service import LendingService


def isbn13(stem: str) -> str:
    """Append the ISBN-13 check digit to a 12-digit stem."""
    total = sum((1 if i % 2 == 0 else 3) * int(ch) for i, ch in enumerate(stem))
    return stem + str((10 - total % 10) % 10)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def db(tmp_path):
    # Each test gets its own database file
    return Database(str(tmp_path / "lending.db"))


@pytest.fixture
def records():
    return CreatedRecords()


@pytest.fixture
def catalog(db, records):
    catalog = Catalog(db, tracker=records)
    yield catalog
    purge(db, records)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 10, 9, 30))


@pytest.fixture
def service(db, clock):
    return LendingService(db, clock=clock)


@pytest.fixture
def member(catalog):
    return catalog.add_user("reader_one", "reader.one@example.com", full_name="Siti Rahma", phone="081234567890")


@pytest.fixture
def book(catalog):
    return catalog.add_book("978-0-00-000001-9", "Integration Test Book", 5, author="Andrea Hirata", price=85000.0)


@pytest.fixture
def make_books(catalog):
    def _make(count: int, copies: int = 5):
        return [catalog.add_book(isbn13(f"9780000010{i:02d}"), f"Limit Test {i}", copies) for i in range(count)]
    return _make


@pytest.fixture
def make_users(catalog):
    def _make(count: int):
        return [catalog.add_user(f"reader_{i}", f"reader{i}@example.com") for i in range(count)]
    return _make

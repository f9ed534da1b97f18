"""Shared fixtures: an empty in-memory store, a controllable clock and item factories."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from curation.models import ContentItem, DataType, Stage
from curation.storage.memory import InMemoryStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def add_item(store):
    """Factory placing an item directly into a stage of ``store``."""

    def _add(data_type: DataType, payload: dict, stage: Stage = Stage.DRAFT, item_id: str = None) -> ContentItem:
        item = ContentItem(
            id=item_id or str(uuid.uuid4()),
            data_type=data_type,
            stage=stage,
            payload=payload,
        )
        return store.add_item(item)

    return _add


@pytest.fixture
def meaning_payload():
    return {"word": "casa", "definition": "a house or home", "language": "ES", "level": "A1"}

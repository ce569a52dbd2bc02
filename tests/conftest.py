"""Pytest configuration and shared fixtures."""
from datetime import datetime, timedelta, timezone

import pytest

from recordstate import InMemoryTable

from models import ALL_MODELS


class FrozenClock:
    """Controllable time source for timestamp bookkeeping."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Provide a clock frozen at a fixed instant."""
    return FrozenClock(datetime(2016, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture(autouse=True)
def bind_tables(clock):
    """Give every record kind a fresh table and the frozen clock for each test."""
    # Store original schemas so per-test configure() calls don't leak
    original_schemas = {model: model.schema for model in ALL_MODELS}

    for model in ALL_MODELS:
        model.configure(clock=clock)
        model.table = InMemoryTable(model.schema)

    yield

    for model, schema in original_schemas.items():
        model.schema = schema
        model.table = None


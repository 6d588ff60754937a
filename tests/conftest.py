"""Shared fixtures: a pinned clock, a seeded random source and fresh stores."""

import random
from datetime import datetime, timezone

import pytest

from src.adapters.storage import InMemoryStorageAdapter
from src.domain.services.record_store import RecordStore

FIXED_NOW = datetime(2024, 3, 15, 10, 30, 0, tzinfo=timezone.utc)

JANE_DOE_CSV = (
    "Timestamp,Full Name,MRN,Date of Birth,Phone,Symptoms,Triage\n"
    "2024-03-15T10:00:00Z,Jane Doe,1234,1990-05-01,555-1234,Fever,P2\n"
)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now):
    return lambda: fixed_now


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def storage():
    return InMemoryStorageAdapter()


@pytest.fixture
def store(storage, clock):
    return RecordStore(storage, clock=clock)


@pytest.fixture
def jane_doe_csv():
    return JANE_DOE_CSV

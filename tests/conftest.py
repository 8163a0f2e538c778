"""Test fixtures for selection and analytics tests.

Provides:
- settings: Settings built without reading a .env file
- clock: FrozenClock pinned to a fixed Monday morning
- repo: empty InMemorySelectionRepository
"""

from __future__ import annotations

import pytest

from src.rollcall.config import Settings
from tests.doubles import FrozenClock, InMemorySelectionRepository


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, SELECTION_SEED=None)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def repo() -> InMemorySelectionRepository:
    return InMemorySelectionRepository()

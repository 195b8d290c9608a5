"""Fixtures shared by unit tests."""

import pytest

from tests.unit.fakes import InMemoryAuthCodeStore


@pytest.fixture()
def store() -> InMemoryAuthCodeStore:
    return InMemoryAuthCodeStore()

"""Shared test fixtures and configuration."""
import itertools
import os
from datetime import datetime, timezone

import pytest

# Keep the in-memory store instant and the SQL default off disk
os.environ.setdefault("STORE_LATENCY_MS", "0")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from roster.clock import FixedClock  # noqa: E402
from roster.config import reset_settings  # noqa: E402
from roster.schemas.group import Group  # noqa: E402
from roster.schemas.member import MemberStatus  # noqa: E402
from roster.stores.memory import InMemoryRecordStore  # noqa: E402
from tests.member_helpers import make_member  # noqa: E402

EPOCH = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock():
    return FixedClock(EPOCH)


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"new-{next(counter)}"


@pytest.fixture
def groups():
    return [
        Group(id="g-u12", name="Under 12", subgroups=["Red", "Blue"]),
        Group(id="g-sen", name="Seniors", subgroups=[]),
    ]


@pytest.fixture
def members():
    return [
        make_member("m-jane", "Jane Doe", email="jane@x.com", status=MemberStatus.PENDING),
        make_member("m-bob", "Bob Stone", group_id="g-u12", subgroup="Red"),
        make_member("m-cara", "Cara Lin", related_member_ids=["m-bob"]),
    ]


@pytest.fixture
def store(members, groups):
    return InMemoryRecordStore(members, groups, latency_ms=0)

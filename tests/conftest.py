"""
Civic Core Library - Test Configuration and Fixtures
"""
from datetime import datetime, timezone

import pytest

from civic_core_lib.config import CoreSettings
from civic_core_lib.core.service import IssueService
from civic_core_lib.events import RecordingEventEmitter
from civic_core_lib.infrastructure.cache import InMemoryCache
from civic_core_lib.models import User, UserRole
from civic_core_lib.repository.memory import InMemoryIssueRepository
from civic_core_lib.utils.clock import ManualClock

T0 = datetime(2025, 9, 9, 8, 0, tzinfo=timezone.utc)

PUBLIC_WORKS = "Public Works"
SANITATION = "Sanitation"


@pytest.fixture
def clock() -> ManualClock:
    """Clock frozen at T0; tests advance it explicitly"""
    return ManualClock(T0)


@pytest.fixture
def admin() -> User:
    return User(id="usr_admin", email="admin@city.gov", name="Asha Admin", role=UserRole.ADMIN)


@pytest.fixture
def works_head() -> User:
    return User(
        id="usr_works_head",
        email="head.works@city.gov",
        role=UserRole.DEPARTMENT_HEAD,
        department=PUBLIC_WORKS,
    )


@pytest.fixture
def sanitation_head() -> User:
    return User(
        id="usr_sanitation_head",
        email="head.sanitation@city.gov",
        role=UserRole.DEPARTMENT_HEAD,
        department=SANITATION,
    )


@pytest.fixture
def crew_member() -> User:
    return User(
        id="usr_crew",
        email="crew@city.gov",
        role=UserRole.TEAM_MEMBER,
        department=PUBLIC_WORKS,
    )


@pytest.fixture
def other_member() -> User:
    return User(
        id="usr_other_crew",
        email="other.crew@city.gov",
        role=UserRole.TEAM_MEMBER,
        department=PUBLIC_WORKS,
    )


@pytest.fixture
def sanitation_member() -> User:
    return User(
        id="usr_sanitation_crew",
        email="sanitation.crew@city.gov",
        role=UserRole.TEAM_MEMBER,
        department=SANITATION,
    )


@pytest.fixture
def retired_member() -> User:
    return User(
        id="usr_retired",
        email="retired@city.gov",
        role=UserRole.TEAM_MEMBER,
        department=PUBLIC_WORKS,
        is_active=False,
    )


@pytest.fixture
def repository(
    admin, works_head, sanitation_head, crew_member, other_member, sanitation_member, retired_member
):
    """In-memory repository seeded with one user per role"""
    return InMemoryIssueRepository(
        users=[
            admin, works_head, sanitation_head,
            crew_member, other_member, sanitation_member, retired_member,
        ]
    )


@pytest.fixture
def cache(clock) -> InMemoryCache:
    return InMemoryCache(clock)


@pytest.fixture
def emitter() -> RecordingEventEmitter:
    return RecordingEventEmitter()


@pytest.fixture
def settings() -> CoreSettings:
    return CoreSettings(cache_backend="memory")


@pytest.fixture
def service(repository, cache, emitter, clock, settings) -> IssueService:
    return IssueService(repository, cache=cache, emitter=emitter, clock=clock, settings=settings)


@pytest.fixture
def pothole_payload() -> dict:
    return {
        "title": "Pothole on Main Road",
        "description": "Deep pothole near the bus stop, two wheelers swerving",
        "department": PUBLIC_WORKS,
        "latitude": 23.6139,
        "longitude": 85.2790,
        "address": "Main Road, Ranchi",
        "priority": "CRITICAL",
    }


@pytest.fixture
def garbage_payload() -> dict:
    return {
        "title": "Garbage not collected",
        "description": "Bins overflowing for three days on the market street",
        "department": SANITATION,
        "latitude": 23.3441,
        "longitude": 85.3096,
        "priority": "LOW",
    }

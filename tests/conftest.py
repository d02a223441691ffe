from datetime import datetime, timedelta, timezone

import pytest

from database import ChangeFeed, DatabaseManager
from models import User, UserRole
from services import CheckInService, IdentityGate, IdentityProvider, ScoringService, TeamRegistryService

NOW = datetime(2025, 3, 1, 14, 0, 0, tzinfo=timezone.utc)
PASSWORD = "correct horse battery"


class FakeClock:
    """Callable clock that only moves when a test moves it"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(str(tmp_path / "competition.db"))
    manager.initialize_database()
    return manager


@pytest.fixture
def feed(db_manager):
    return ChangeFeed(db_manager)


@pytest.fixture
def registry(db_manager, feed, clock):
    return TeamRegistryService(db_manager, feed=feed, clock=clock)


@pytest.fixture
def checkin(db_manager, feed, clock):
    return CheckInService(db_manager, feed=feed, clock=clock)


@pytest.fixture
def scoring(db_manager, feed, clock):
    return ScoringService(db_manager, feed=feed, clock=clock)


@pytest.fixture
def gate(db_manager, clock):
    provider = IdentityProvider(db_manager, iterations=1_000, clock=clock)
    return IdentityGate(db_manager, provider=provider, clock=clock)


@pytest.fixture
def users(gate):
    """One signed-up account per role, keyed by role"""
    seeded = {}
    for role in UserRole:
        email = f"{role.value}@competition.test"
        ok, _, uid = gate.provider.create_account(email, PASSWORD)
        assert ok
        ok, _ = gate.provision_user(uid, email, role.value, f"{role.value.title()} One")
        assert ok
        seeded[role] = User(uid=uid, email=email, role=role, name=f"{role.value.title()} One")
    return seeded


@pytest.fixture
def judge(users):
    return users[UserRole.JUDGE]


@pytest.fixture
def add_team(registry):
    """Register a team with sensible defaults; returns the stored Team"""

    def _add(team_number, **overrides):
        fields = {
            "team_number": team_number,
            "team_name": f"Team {team_number}",
            "school_name": "Riverside High",
            "student1": "Ana",
            "student2": "Ben",
            "category": "jr",
        }
        fields.update(overrides)
        ok, message, _ = registry.add_team(fields)
        assert ok, message
        return registry.get_team_by_number(team_number)

    return _add

"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

from src.database.models import UserDB, TeamDB, UserRoleEnum


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    db = Mock()
    session = AsyncMock()

    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.add = Mock()
    session.add_all = Mock()

    db.session = Mock(return_value=session)

    return db, session


@pytest.fixture
def fixed_now():
    """A fixed request instant: Saturday 2025-11-15 10:00 UTC."""
    return datetime(2025, 11, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def leader():
    """A team leader with no owner."""
    return UserDB(id=1, username="Dana", email="dana@example.com", role=UserRoleEnum.OWNER.value, owner_id=None)


@pytest.fixture
def sample_teams():
    """Two teams belonging to the leader."""
    return [
        TeamDB(id=10, team_name="Fixspire", owner_id=1, members=["Asha", "Ravi Kumar", "Lee"]),
        TeamDB(id=11, team_name="Orbit", owner_id=1, members=["Mina", "Tom"]),
    ]


@pytest.fixture
def manager():
    """A manager working under the leader's account."""
    return UserDB(id=2, username="Sam", email="sam@example.com", role=UserRoleEnum.MANAGER.value, owner_id=1)

import pytest

from tax_qualifications.config import Settings
from tax_qualifications.domain.models import Role, UserProfile
from tax_qualifications.infrastructure.storage.memory_store import InMemoryDocumentStore


def _make_user(uid: str = "broker-1", role: Role = Role.BROKER, active: bool = True) -> UserProfile:
    return UserProfile(
        uid=uid,
        first_name="Ana",
        last_name="Pérez",
        national_id="11.111.111-1",
        email=f"{uid}@example.com",
        role=role,
        active=active,
    )


@pytest.fixture
def make_user():
    return _make_user


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def broker() -> UserProfile:
    return _make_user()


@pytest.fixture
def admin() -> UserProfile:
    return _make_user("admin-1", Role.ADMIN)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongo_uri="mongodb://localhost:27017/",
        db_name="test",
        batch_size=500,
        max_upload_mb=1,
        max_commit_workers=2,
        progress_interval=100,
        strict_period=True,
    )

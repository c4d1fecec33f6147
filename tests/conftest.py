from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import URL

from config.common_settings import ContentLockSettings
from config.database.database_manager import DatabaseManager
from content_lock import Base
from content_lock.conflict_guard import ConflictGuard
from content_lock.expiry_sweeper import ExpirySweeper
from content_lock.lock_registry import LockRegistry
from content_lock.repositories import ContentLockRepository, UserRepository

T0 = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

SAMPLE_CONFIG = """
app:
  database:
    uri: "sqlite://"
  content_lock:
    disabled: false
    duration: 3600
    maintenance:
      enabled: false
      interval_minutes: 15
      max_age_hours: 6
      owner_ids: [2, 3]
  logging.level:
    root: INFO
    content_lock: DEBUG
"""


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def db_manager():
    """Create a database manager with in-memory SQLite for testing"""
    url = URL.create("sqlite", database=":memory:")
    manager = DatabaseManager(url)
    manager.create_tables(Base.metadata)
    return manager


@pytest.fixture
def user_repository(db_manager):
    return UserRepository(db_manager)


@pytest.fixture
def users(user_repository):
    """Three host users: alice (#1), bob (#2) and carol (#3)"""
    return [
        user_repository.create("alice", "alice@example.org"),
        user_repository.create("bob", "bob@example.org"),
        user_repository.create("carol", "carol@example.org"),
    ]


@pytest.fixture
def lock_repository(db_manager):
    return ContentLockRepository(db_manager)


@pytest.fixture
def sweeper(lock_repository, clock):
    return ExpirySweeper(lock_repository, clock)


@pytest.fixture
def registry(lock_repository, sweeper, clock):
    return LockRegistry(lock_repository, sweeper, clock)


@pytest.fixture
def guard(lock_repository):
    return ConflictGuard(lock_repository)


@pytest.fixture
def settings():
    return ContentLockSettings(disabled=False, duration=3600)


@pytest.fixture
def disabled_settings():
    return ContentLockSettings(disabled=True, duration=3600)


@pytest.fixture
def common_config(tmp_path, monkeypatch):
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(SAMPLE_CONFIG)

    # Patch BASE_DIR to point to our temp directory
    monkeypatch.setattr('config.common_settings.BASE_DIR', str(tmp_path))
    monkeypatch.delenv("CONTENT_LOCK_DB_URI", raising=False)

    from config.common_settings import CommonConfig
    # Add leading slash to match implementation's path handling
    return CommonConfig(config_path="/test_config.yaml")


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs"""
    from utils.logging_util import logger

    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)

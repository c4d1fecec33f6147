import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from api.content_lock_routes import get_lock_repository, get_settings, get_user_repository
from app import app
from config.common_settings import ContentLockSettings
from config.database.database_manager import DatabaseManager
from content_lock import Base
from content_lock.repositories import ContentLockRepository, UserRepository


@pytest.fixture
def api_db_manager():
    # Requests are served on worker threads, so they must share one in-memory connection
    manager = DatabaseManager(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    manager.create_tables(Base.metadata)
    return manager


@pytest.fixture
def api_users(api_db_manager):
    users = UserRepository(api_db_manager)
    return [users.create("alice", "alice@example.org"), users.create("bob", "bob@example.org")]


@pytest.fixture
def lock_settings():
    return {"value": ContentLockSettings(disabled=False, duration=3600)}


@pytest.fixture
def client(api_db_manager, api_users, lock_settings):
    app.dependency_overrides[get_lock_repository] = lambda: ContentLockRepository(api_db_manager)
    app.dependency_overrides[get_user_repository] = lambda: UserRepository(api_db_manager)
    app.dependency_overrides[get_settings] = lambda: lock_settings["value"]
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user):
    return {"X-User-Id": str(user.id)}


def _acquire(client, user, entity_id=42, entity_kind="items"):
    return client.post("/content-lock/locks/acquire",
                       json={"entity_id": entity_id, "entity_kind": entity_kind},
                       headers=_headers(user))


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_acquire_and_get_lock(client, api_users):
    alice = api_users[0]

    response = _acquire(client, alice)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "acquired"
    assert body["lock"]["owner_id"] == alice.id
    assert body["lock"]["owner_name"] == "alice"
    assert body["message"] is None
    assert body["offer_bypass"] is False

    lock = client.get("/content-lock/locks", params={"entity_kind": "items", "entity_id": 42}).json()
    assert lock["id"] == body["lock"]["id"]


def test_get_lock_without_lock(client):
    response = client.get("/content-lock/locks", params={"entity_kind": "items", "entity_id": 1})

    assert response.status_code == 200
    assert response.json() is None


def test_acquire_requires_user_header(client):
    response = client.post("/content-lock/locks/acquire", json={"entity_id": 42, "entity_kind": "items"})
    assert response.status_code == 422


def test_acquire_held_by_other(client, api_users):
    alice, bob = api_users
    _acquire(client, bob)

    body = _acquire(client, alice).json()

    assert body["status"] == "held_by_other"
    assert body["offer_bypass"] is True
    assert body["lock"]["owner_name"] == "bob"
    assert "edited by the user bob" in body["message"]


def test_acquire_when_disabled(client, api_users, lock_settings):
    lock_settings["value"] = ContentLockSettings(disabled=True)

    body = _acquire(client, api_users[0]).json()

    assert body["status"] == "no_lock"
    assert body["lock"] is None


def test_refresh_and_release(client, api_users):
    alice, bob = api_users
    _acquire(client, alice)
    key = {"entity_id": 42, "entity_kind": "items"}

    assert client.post("/content-lock/locks/refresh", json=key, headers=_headers(bob)).status_code == 404
    assert client.post("/content-lock/locks/refresh", json=key, headers=_headers(alice)).status_code == 200

    assert client.post("/content-lock/locks/release", json=key, headers=_headers(bob)).json() == {"released": False}
    assert client.post("/content-lock/locks/release", json=key, headers=_headers(alice)).json() == {"released": True}


class TestCheckWrite:
    def _check(self, client, user, action, bypass=False):
        return client.post("/content-lock/locks/check-write",
                           json={"entity_id": 42, "entity_kind": "items", "action": action, "bypass": bypass},
                           headers=_headers(user))

    @pytest.mark.parametrize("action", ["update", "delete"])
    def test_conflict_returns_409(self, client, api_users, action):
        alice, bob = api_users
        _acquire(client, bob)

        response = self._check(client, alice, action)

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "write_conflict"
        assert detail["owner_id"] == bob.id
        assert detail["owner_name"] == "bob"
        assert detail["action"] == action
        assert "edited by the user bob" in detail["message"]

    def test_bypassed_update_keeps_lock(self, client, api_users):
        alice, bob = api_users
        _acquire(client, bob)

        body = self._check(client, alice, "update", bypass=True).json()

        assert body["status"] == "allow_bypassed"
        assert body["lock_removed"] is False
        assert "the user bob can override it on save" in body["message"]
        assert _acquire(client, alice).json()["status"] == "held_by_other"

    def test_owner_update_clears_lock(self, client, api_users):
        alice = api_users[0]
        _acquire(client, alice)

        body = self._check(client, alice, "update").json()

        assert body["status"] == "allow"
        assert body["lock_removed"] is True
        assert body["message"] is None

    def test_unknown_action_is_rejected(self, client, api_users):
        assert self._check(client, api_users[0], "archive").status_code == 422


class TestMaintenance:
    def test_check_and_clean(self, client, api_users):
        alice, bob = api_users
        _acquire(client, alice, entity_id=1)
        _acquire(client, bob, entity_id=2)

        check = client.post("/content-lock/maintenance", json={"mode": "check", "max_age_hours": 0})
        assert check.json() == {"mode": "check", "count": 2}

        clean = client.post("/content-lock/maintenance",
                            json={"mode": "clean", "max_age_hours": "0", "owner_ids": [bob.id]})
        assert clean.json() == {"mode": "clean", "count": 1}
        assert _acquire(client, alice, entity_id=2).json()["status"] == "acquired"

    def test_invalid_hours_match_nothing(self, client, api_users):
        _acquire(client, api_users[0])

        response = client.post("/content-lock/maintenance", json={"mode": "clean", "max_age_hours": "invalid"})

        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_unknown_mode_is_rejected(self, client):
        assert client.post("/content-lock/maintenance", json={"mode": "purge"}).status_code == 422

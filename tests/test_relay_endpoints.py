"""Tests for the relay HTTP API."""

import pytest
from fastapi.testclient import TestClient

from relay.exceptions import SessionStoreUnavailableError
from relay.main import build_repository, create_app
from relay.config import RelaySettings
from relay.repositories.session_repository import (
    InMemorySessionRepository,
    SessionRepository,
    SqliteSessionRepository,
)


class UnavailableRepository(SessionRepository):
    def add(self, session):
        raise SessionStoreUnavailableError("database is locked")

    def get(self, session_id, now=None):
        raise SessionStoreUnavailableError("database is locked")

    def purge_expired(self, now=None):
        raise SessionStoreUnavailableError("database is locked")

    def ping(self):
        raise SessionStoreUnavailableError("database is locked")


@pytest.fixture
def client(relay_app):
    """Create FastAPI test client."""
    with TestClient(relay_app) as client:
        yield client


def test_root_endpoint(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_endpoint(client):
    response = client.get('/health')
    assert response.json() == {'status': 'healthy', 'service': 'relay'}


def test_ready_endpoint(client):
    response = client.get('/ready')
    assert response.status_code == 200
    data = response.json()
    assert data['ready'] is True
    assert data['connections'] == 0


def test_request_id_header(client):
    response = client.get('/health')
    assert response.headers.get('X-Request-ID')


def test_create_session_without_body(client):
    """Test session creation with no request body."""
    response = client.post('/session')
    assert response.status_code == 201
    data = response.json()
    assert len(data['sessionId']) == 8
    assert data['password'] is None


def test_create_and_lookup_protected_session(client):
    created = client.post('/session', json={'password': 'hunter2'}).json()

    response = client.get(f"/session/{created['sessionId']}")

    assert response.status_code == 200
    assert response.json() == {'sessionId': created['sessionId'], 'password': 'hunter2'}


def test_empty_password_creates_open_session(client):
    response = client.post('/session', json={'password': ''})
    assert response.json()['password'] is None


def test_lookup_unknown_session(client):
    response = client.get('/session/deadbeef')
    assert response.status_code == 404
    assert response.json()['code'] == 'SESSION_NOT_FOUND'


def test_invalid_body_is_rejected(client):
    response = client.post('/session', json={'password': 123})
    assert response.status_code == 422


def test_store_unavailable_maps_to_503(relay_settings):
    app = create_app(relay_settings, repository=UnavailableRepository())

    with TestClient(app) as client:
        created = client.post('/session')
        lookup = client.get('/session/abcd1234')
        ready = client.get('/ready')

    assert created.status_code == 503
    assert created.json()['code'] == 'SESSION_STORE_UNAVAILABLE'
    assert lookup.status_code == 503
    assert ready.status_code == 503
    assert ready.json()['ready'] is False


def test_apps_do_not_share_sessions(relay_settings):
    first = create_app(relay_settings, repository=InMemorySessionRepository())
    second = create_app(relay_settings, repository=InMemorySessionRepository())

    with TestClient(first) as a, TestClient(second) as b:
        session_id = a.post('/session').json()['sessionId']

        assert a.get(f'/session/{session_id}').status_code == 200
        assert b.get(f'/session/{session_id}').status_code == 404


class TestBuildRepository:

    def test_memory_backend(self, relay_settings):
        assert isinstance(build_repository(relay_settings), InMemorySessionRepository)

    def test_sqlite_backend(self, tmp_path):
        settings = RelaySettings(session_backend='sqlite', database_path=str(tmp_path / 's.db'))
        assert isinstance(build_repository(settings), SqliteSessionRepository)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_repository(RelaySettings(session_backend='redis'))

"""Tests for session repositories and the session service."""

import asyncio
from datetime import timedelta

import pytest

from relay.exceptions import (
    InvalidPasswordError,
    MissingSessionIdError,
    SessionNotFoundError,
    SessionStoreUnavailableError,
)
from relay.repositories.session_repository import (
    InMemorySessionRepository,
    Session,
    SqliteSessionRepository,
    utcnow,
)
from relay.cleanup_task import ExpiredSessionCleaner
from relay.services.session_service import MAX_ID_ATTEMPTS, SessionService


@pytest.fixture(params=['sqlite', 'memory'])
def repository(request, tmp_path):
    """
    Each repository test runs against both backends.
    """
    if request.param == 'sqlite':
        return SqliteSessionRepository(str(tmp_path / 'data' / 'sessions.db'))
    return InMemorySessionRepository()


def make_session(session_id='abcd1234', password=None, age_seconds=0, ttl_seconds=3600):
    return Session(
        session_id=session_id,
        password=password,
        created_at=utcnow() - timedelta(seconds=age_seconds),
        ttl_seconds=ttl_seconds,
    )


class TestSessionRepository:

    def test_add_and_get(self, repository):
        assert repository.add(make_session(password='secret')) is True

        session = repository.get('abcd1234')

        assert session is not None
        assert session.password == 'secret'
        assert session.ttl_seconds == 3600

    def test_duplicate_id_is_refused(self, repository):
        repository.add(make_session())

        assert repository.add(make_session(password='other')) is False
        assert repository.get('abcd1234').password is None

    def test_missing_session(self, repository):
        assert repository.get('nope0000') is None

    def test_expired_session_is_hidden_before_purge(self, repository):
        repository.add(make_session(age_seconds=120, ttl_seconds=60))

        assert repository.get('abcd1234') is None

    def test_purge_removes_only_expired(self, repository):
        repository.add(make_session('old00000', age_seconds=120, ttl_seconds=60))
        repository.add(make_session('new00000'))

        assert repository.purge_expired() == 1
        assert repository.get('new00000') is not None
        assert repository.purge_expired() == 0

    def test_get_at_explicit_time(self, repository):
        repository.add(make_session(ttl_seconds=60))

        assert repository.get('abcd1234', now=utcnow() + timedelta(seconds=61)) is None


class TestSqliteDurability:

    def test_sessions_survive_reopen(self, tmp_path):
        db_path = str(tmp_path / 'sessions.db')
        SqliteSessionRepository(db_path).add(make_session(password='pw'))

        reopened = SqliteSessionRepository(db_path)

        assert reopened.get('abcd1234').password == 'pw'

    def test_unopenable_database_is_unavailable(self, tmp_path):
        with pytest.raises(SessionStoreUnavailableError):
            SqliteSessionRepository(str(tmp_path))

    def test_ping_detects_missing_table(self, tmp_path):
        db_path = tmp_path / 'sessions.db'
        repository = SqliteSessionRepository(str(db_path))
        db_path.unlink()

        with pytest.raises(SessionStoreUnavailableError):
            repository.ping()


class CollidingRepository(InMemorySessionRepository):
    """Refuses the first ``collisions`` inserts as if the id were taken."""

    def __init__(self, collisions):
        super().__init__()
        self.collisions = collisions
        self.attempts = 0

    def add(self, session):
        self.attempts += 1
        if self.attempts <= self.collisions:
            return False
        return super().add(session)


class TestSessionService:

    @pytest.fixture
    def service(self):
        return SessionService(InMemorySessionRepository(), ttl_seconds=3600)

    def test_create_session_id_format(self, service):
        session = service.create_session()

        assert len(session.session_id) == 8
        int(session.session_id, 16)
        assert session.password is None

    def test_empty_password_means_open(self, service):
        session = service.create_session('')

        assert session.password is None
        assert service.admit(session.session_id, None) == session

    def test_ids_are_unique(self, service):
        ids = {service.create_session().session_id for _ in range(50)}

        assert len(ids) == 50

    def test_get_unknown_session(self, service):
        with pytest.raises(SessionNotFoundError):
            service.get_session('deadbeef')

    def test_admit_requires_session_id(self, service):
        with pytest.raises(MissingSessionIdError):
            service.admit(None, None)
        with pytest.raises(MissingSessionIdError):
            service.admit('', 'pw')

    def test_admit_checks_password(self, service):
        session = service.create_session('pw')

        assert service.admit(session.session_id, 'pw') == session
        with pytest.raises(InvalidPasswordError):
            service.admit(session.session_id, 'wrong')
        with pytest.raises(InvalidPasswordError):
            service.admit(session.session_id, None)

    def test_open_session_ignores_supplied_password(self, service):
        session = service.create_session()

        assert service.admit(session.session_id, 'anything') == session

    def test_collision_is_retried(self):
        repository = CollidingRepository(collisions=2)
        service = SessionService(repository, ttl_seconds=60)

        session = service.create_session()

        assert repository.attempts == 3
        assert repository.get(session.session_id) is not None

    def test_persistent_collisions_surface_as_unavailable(self):
        service = SessionService(CollidingRepository(collisions=MAX_ID_ATTEMPTS), ttl_seconds=60)

        with pytest.raises(SessionStoreUnavailableError):
            service.create_session()


class TestExpiredSessionCleaner:

    def test_cleanup_cycle_purges(self):
        repository = InMemorySessionRepository()
        repository.add(make_session('old00000', age_seconds=120, ttl_seconds=60))
        cleaner = ExpiredSessionCleaner(repository, interval_seconds=3600)

        assert cleaner.cleanup_cycle() == 1

    @pytest.mark.asyncio
    async def test_background_task_runs_periodically(self):
        repository = InMemorySessionRepository()
        repository.add(make_session('old00000', age_seconds=120, ttl_seconds=60))
        cleaner = ExpiredSessionCleaner(repository, interval_seconds=0.02)

        await cleaner.start()
        await asyncio.sleep(0.1)
        await cleaner.stop()

        assert repository.get('old00000', now=utcnow() - timedelta(days=1)) is None
        assert repository.purge_expired() == 0

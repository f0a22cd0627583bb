from collections.abc import Iterator
from datetime import timedelta

import pytest
from sqlmodel import select

from servicehub.core.services import DatabaseSeeder, DbSessionService, SqlIdentityStore
from servicehub.core.storage import SqlRefreshTokenStore
from servicehub.entities._base import utcnow
from servicehub.entities.refresh_token import RefreshTokenTable
from servicehub.entities.user import RoleTable
from servicehub.runtime.config.config_data import DatabaseConfig


@pytest.fixture
def db_service() -> Iterator[DbSessionService]:
    service = DbSessionService(DatabaseConfig(url="sqlite://"), environment="test")
    service.create_all()
    yield service
    service.dispose()


class TestDbSessionService:
    def test_health_check(self, db_service: DbSessionService):
        assert db_service.health_check() is True

    def test_in_memory_database_is_shared_between_sessions(
        self, db_service: DbSessionService
    ):
        with db_service.session_scope() as session:
            session.add(RoleTable(name="Customer"))

        with db_service.session_scope() as session:
            assert [r.name for r in session.exec(select(RoleTable)).all()] == ["Customer"]

    def test_session_scope_rolls_back_on_error(self, db_service: DbSessionService):
        with pytest.raises(RuntimeError):
            with db_service.session_scope() as session:
                session.add(RoleTable(name="Customer"))
                session.flush()
                raise RuntimeError("abort")

        with db_service.session_scope() as session:
            assert session.exec(select(RoleTable)).all() == []

    async def test_purge_through_a_scoped_session(self, db_service: DbSessionService):
        with db_service.session_scope() as session:
            store = SqlRefreshTokenStore(session)
            await store.save("user-1", "old", 60)
            await store.save("user-2", "new", 3600)

            removed = await store.purge_expired(utcnow() + timedelta(minutes=5))

        assert removed == 1
        with db_service.session_scope() as session:
            assert [r.user_id for r in session.exec(select(RefreshTokenTable))] == ["user-2"]


class TestDatabaseSeeder:
    async def test_seeds_roles_and_admin_once(self, config, session, password_hasher):
        config.seed.enabled = True
        config.seed.admin_password = "Adm1n-Passw0rd!"
        store = SqlIdentityStore(session, config.security, hasher=password_hasher)
        seeder = DatabaseSeeder(store, config.security, config.seed)

        first = await seeder.seed()
        second = await seeder.seed()

        assert first.roles_created == ["Admin", "Customer"]
        assert first.admin_created is True
        assert second.roles_created == []
        assert second.admin_created is False

        admin = await store.find_by_email("admin@example.com")
        assert admin.email_confirmed is True
        assert await store.get_roles(admin) == ["Admin"]
        assert (await store.check_password(admin, "Adm1n-Passw0rd!")).succeeded

    async def test_admin_skipped_without_password(self, config, session, password_hasher):
        config.seed.enabled = True
        config.seed.admin_password = None
        store = SqlIdentityStore(session, config.security, hasher=password_hasher)

        report = await DatabaseSeeder(store, config.security, config.seed).seed()

        assert report.admin_created is False
        assert await store.find_by_email("admin@example.com") is None

    async def test_admin_removed_when_role_missing(self, config, session, password_hasher):
        config.seed.enabled = True
        config.seed.admin_password = "Adm1n-Passw0rd!"
        config.security.roles = ["Customer"]
        store = SqlIdentityStore(session, config.security, hasher=password_hasher)

        report = await DatabaseSeeder(store, config.security, config.seed).seed()

        assert report.admin_created is False
        assert await store.find_by_email("admin@example.com") is None

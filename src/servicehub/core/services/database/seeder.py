"""Creates default roles and the administrator account on startup."""

from dataclasses import dataclass, field

from loguru import logger

from servicehub.core.services.user.identity_store import IdentityStore
from servicehub.runtime.config.config_data import SecurityConfig, SeedConfig

ADMIN_ROLE = "Admin"


@dataclass
class SeedReport:
    roles_created: list[str] = field(default_factory=list)
    admin_created: bool = False


class DatabaseSeeder:
    def __init__(
        self,
        identity_store: IdentityStore,
        security_config: SecurityConfig,
        seed_config: SeedConfig,
    ) -> None:
        self._identity_store = identity_store
        self._security = security_config
        self._seed = seed_config

    async def seed(self) -> SeedReport:
        """Idempotently ensure every configured role and the admin account exist."""
        report = SeedReport()
        for role in self._security.roles:
            if await self._identity_store.ensure_role(role):
                report.roles_created.append(role)

        report.admin_created = await self._seed_admin_user()
        return report

    async def _seed_admin_user(self) -> bool:
        if not self._seed.enabled:
            return False
        if not self._seed.admin_password:
            logger.info("No admin password configured; skipping admin user seeding")
            return False

        if await self._identity_store.find_by_email(self._seed.admin_email):
            return False

        result = await self._identity_store.create_user(
            username=self._seed.admin_username,
            email=self._seed.admin_email,
            password=self._seed.admin_password,
            email_confirmed=True,
        )
        if not result.succeeded or result.user is None:
            logger.error(
                f"Failed to seed admin user: {', '.join(result.error_codes)}"
            )
            return False

        role_result = await self._identity_store.add_to_role(result.user, ADMIN_ROLE)
        if not role_result.succeeded:
            logger.error(
                f"Failed to assign {ADMIN_ROLE} role to seeded admin: "
                f"{', '.join(role_result.error_codes)}"
            )
            await self._identity_store.delete_user(result.user)
            return False

        logger.info(f"Seeded admin user {self._seed.admin_username}")
        return True

"""Database engine and session factory used across the application."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from servicehub.runtime.config.config_data import DatabaseConfig


class DbSessionService:
    def __init__(
        self,
        database_config: DatabaseConfig,
        environment: str = "development",
        engine: Engine | None = None,
    ) -> None:
        """Initialize the shared database engine and session factory.

        Args:
            database_config: Connection URL and pool settings
            environment: Application environment, used for connection tagging
            engine: Pre-built engine; skips engine construction when given
        """
        self._config = database_config
        self._environment = environment
        self._engine = engine or self._create_engine()

    @property
    def engine(self) -> Engine:
        return self._engine

    def _create_engine(self) -> Engine:
        db_config = self._config
        engine_kwargs: dict[str, Any] = {
            "echo": db_config.echo,
            "connect_args": self._get_connect_args(),
        }

        if db_config.is_sqlite:
            if ":memory:" in db_config.url or db_config.url == "sqlite://":
                # One shared connection, otherwise every session sees an empty database.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                    "pool_pre_ping": True,
                }
            )

        logger.info(f"Initializing database engine for environment: {self._environment}")
        return create_engine(db_config.url, **engine_kwargs)

    def _get_connect_args(self) -> dict:
        """Get database-specific connection arguments."""
        if self._config.url.startswith("postgresql"):
            return {
                "application_name": f"servicehub_{self._environment}",
                "connect_timeout": 30,
            }

        if self._config.is_sqlite:
            if self._environment == "production":
                logger.warning(
                    "SQLite is not recommended for production use. "
                    "Consider PostgreSQL for better performance and reliability."
                )
            return {"check_same_thread": False, "timeout": 20}

        return {}

    def create_all(self) -> None:
        """Create all database tables."""
        import servicehub.entities  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine."""
        return Session(self._engine, expire_on_commit=False, autoflush=True)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Database transaction failed: {type(e).__name__}: {e}")
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {type(e).__name__}: {e}")
            return False

    def dispose(self) -> None:
        self._engine.dispose()

from .db_session import DbSessionService
from .seeder import DatabaseSeeder, SeedReport

__all__ = ["DbSessionService", "DatabaseSeeder", "SeedReport"]

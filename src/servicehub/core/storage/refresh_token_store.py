"""Refresh token storage interface and implementations.

One active refresh token per user: ``save`` replaces whatever the user held
before. Only SHA-256 digests are stored, lookups by value hash the input.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from servicehub.core.errors import PersistenceError
from servicehub.core.security import hash_token
from servicehub.entities._base import as_utc, utcnow
from servicehub.entities.refresh_token import RefreshToken, RefreshTokenTable


class RefreshTokenStore(ABC):
    """Abstract interface for refresh token persistence."""

    @abstractmethod
    async def save(self, user_id: str, token: str, ttl_seconds: int) -> RefreshToken:
        """Create or replace the refresh token held by ``user_id``.

        Args:
            user_id: Owning user identifier
            token: Raw opaque token; only its digest is stored
            ttl_seconds: Lifetime from now

        Returns:
            The stored record
        """

    @abstractmethod
    async def find_by_user(self, user_id: str) -> RefreshToken | None:
        pass

    @abstractmethod
    async def find_by_token(self, token: str) -> RefreshToken | None:
        pass

    @abstractmethod
    async def revoke(self, record_id: int) -> bool:
        """Delete a record. Revoking a record that is already gone is a no-op.

        Returns:
            True only for the caller whose call removed the record
        """

    @abstractmethod
    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete records whose expiry has passed.

        Returns:
            Number of records removed
        """


class SqlRefreshTokenStore(RefreshTokenStore):
    """SQLModel-backed store. Database errors surface as ``PersistenceError``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    async def save(self, user_id: str, token: str, ttl_seconds: int) -> RefreshToken:
        token_hash = hash_token(token)
        try:
            try:
                return self._upsert(user_id, token_hash, ttl_seconds)
            except IntegrityError:
                # A concurrent save inserted the user's row first; last write wins.
                self._session.rollback()
                return self._upsert(user_id, token_hash, ttl_seconds)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(f"Failed to save refresh token for user {user_id}: {exc}")
            raise PersistenceError("Failed to save refresh token") from exc

    async def find_by_user(self, user_id: str) -> RefreshToken | None:
        stmt = select(RefreshTokenTable).where(RefreshTokenTable.user_id == user_id)
        return self._first(stmt)

    async def find_by_token(self, token: str) -> RefreshToken | None:
        if not token:
            return None
        stmt = select(RefreshTokenTable).where(
            RefreshTokenTable.token_hash == hash_token(token)
        )
        return self._first(stmt)

    async def revoke(self, record_id: int) -> bool:
        try:
            result = self._session.execute(
                delete(RefreshTokenTable).where(RefreshTokenTable.id == record_id)
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to revoke refresh token") from exc
        return result.rowcount > 0

    async def purge_expired(self, now: datetime | None = None) -> int:
        cutoff = now or utcnow()
        try:
            rows = self._session.exec(
                select(RefreshTokenTable).where(RefreshTokenTable.expires_at < cutoff)
            ).all()
            for row in rows:
                self._session.delete(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to purge expired refresh tokens") from exc

        if rows:
            logger.info(f"Purged {len(rows)} expired refresh tokens")
        return len(rows)

    def _upsert(self, user_id: str, token_hash: str, ttl_seconds: int) -> RefreshToken:
        now = utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)
        row = self._session.exec(
            select(RefreshTokenTable).where(RefreshTokenTable.user_id == user_id)
        ).first()
        if row is None:
            row = RefreshTokenTable(
                user_id=user_id,
                token_hash=token_hash,
                expires_at=expires_at,
                created_at=now,
            )
        else:
            row.token_hash = token_hash
            row.expires_at = expires_at
        self._session.add(row)
        self._session.commit()
        self._session.refresh(row)
        return _to_entity(row)

    def _first(self, stmt) -> RefreshToken | None:
        try:
            row = self._session.exec(stmt).first()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to read refresh token") from exc
        return _to_entity(row) if row else None


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """Dict-backed store for tests and single-process development."""

    def __init__(self) -> None:
        self._by_user: dict[str, RefreshToken] = {}
        self._next_id = 1

    async def save(self, user_id: str, token: str, ttl_seconds: int) -> RefreshToken:
        now = utcnow()
        existing = self._by_user.get(user_id)
        if existing is None:
            record = RefreshToken(
                id=self._next_id,
                user_id=user_id,
                token_hash=hash_token(token),
                expires_at=now + timedelta(seconds=ttl_seconds),
                created_at=now,
            )
            self._next_id += 1
        else:
            record = existing.model_copy(
                update={
                    "token_hash": hash_token(token),
                    "expires_at": now + timedelta(seconds=ttl_seconds),
                }
            )
        self._by_user[user_id] = record
        return record

    async def find_by_user(self, user_id: str) -> RefreshToken | None:
        return self._by_user.get(user_id)

    async def find_by_token(self, token: str) -> RefreshToken | None:
        if not token:
            return None
        digest = hash_token(token)
        return next(
            (r for r in self._by_user.values() if r.token_hash == digest), None
        )

    async def revoke(self, record_id: int) -> bool:
        for user_id, record in list(self._by_user.items()):
            if record.id == record_id:
                del self._by_user[user_id]
                return True
        return False

    async def purge_expired(self, now: datetime | None = None) -> int:
        expired = [uid for uid, r in self._by_user.items() if r.is_expired(now)]
        for user_id in expired:
            del self._by_user[user_id]
        return len(expired)


def _to_entity(row: RefreshTokenTable) -> RefreshToken:
    return RefreshToken(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
    )

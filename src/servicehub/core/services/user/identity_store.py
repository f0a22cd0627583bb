"""User identity store: accounts, password verification, roles and claims.

``create_user`` and ``add_to_role`` report expected failures (duplicates,
password policy, unknown role) as :class:`IdentityResult` values. Database
failures raise :class:`PersistenceError`.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from servicehub.core.errors import PersistenceError
from servicehub.entities._base import utcnow
from servicehub.entities.user import (
    RoleTable,
    User,
    UserClaim,
    UserClaimTable,
    UserRoleTable,
    UserTable,
)
from servicehub.runtime.config.config_data import PasswordPolicyConfig, SecurityConfig

ALLOWED_USERNAME_CHARS = re.compile(r"^[A-Za-z0-9\-._@+]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


@dataclass(frozen=True)
class IdentityError:
    code: str
    description: str


@dataclass(frozen=True)
class IdentityResult:
    succeeded: bool
    errors: tuple[IdentityError, ...] = ()
    user: User | None = None

    @classmethod
    def success(cls, user: User | None = None) -> IdentityResult:
        return cls(succeeded=True, user=user)

    @classmethod
    def failed(cls, *errors: IdentityError) -> IdentityResult:
        return cls(succeeded=False, errors=tuple(errors))

    @property
    def error_codes(self) -> list[str]:
        return [e.code for e in self.errors]


@dataclass(frozen=True)
class SignInResult:
    """Outcome of a password check. Lockout is never enforced."""

    succeeded: bool
    is_not_allowed: bool = False
    is_locked_out: bool = False

    @property
    def reason(self) -> str:
        if self.succeeded:
            return "Succeeded"
        if self.is_locked_out:
            return "Lockout"
        if self.is_not_allowed:
            return "NotAllowed"
        return "InvalidCredentials"


def normalize(value: str) -> str:
    return value.strip().upper()


def validate_password(password: str, policy: PasswordPolicyConfig) -> list[IdentityError]:
    """Check ``password`` against the policy, collecting every violation."""
    errors = []
    if len(password) < policy.min_length:
        errors.append(
            IdentityError(
                "PasswordTooShort",
                f"Passwords must be at least {policy.min_length} characters.",
            )
        )
    if policy.require_non_alphanumeric and all(ch.isalnum() for ch in password):
        errors.append(
            IdentityError(
                "PasswordRequiresNonAlphanumeric",
                "Passwords must have at least one non alphanumeric character.",
            )
        )
    if policy.require_digit and not any(ch.isdigit() for ch in password):
        errors.append(
            IdentityError(
                "PasswordRequiresDigit", "Passwords must have at least one digit."
            )
        )
    if policy.require_lowercase and not any(ch.islower() for ch in password):
        errors.append(
            IdentityError(
                "PasswordRequiresLower",
                "Passwords must have at least one lowercase character.",
            )
        )
    if policy.require_uppercase and not any(ch.isupper() for ch in password):
        errors.append(
            IdentityError(
                "PasswordRequiresUpper",
                "Passwords must have at least one uppercase character.",
            )
        )
    return errors


class IdentityStore(ABC):
    """User-record store consumed by the auth flows."""

    @abstractmethod
    async def create_user(
        self,
        username: str,
        email: str,
        password: str | None = None,
        email_confirmed: bool = False,
    ) -> IdentityResult:
        """Create a user, all-or-nothing. ``password=None`` creates a federated account."""

    @abstractmethod
    async def delete_user(self, user: User) -> None:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def find_by_username(self, username: str) -> User | None:
        pass

    @abstractmethod
    async def check_password(self, user: User, password: str) -> SignInResult:
        pass

    @abstractmethod
    async def get_roles(self, user: User) -> list[str]:
        pass

    @abstractmethod
    async def add_to_role(self, user: User, role: str) -> IdentityResult:
        pass

    @abstractmethod
    async def remove_from_role(self, user: User, role: str) -> IdentityResult:
        pass

    @abstractmethod
    async def get_claims(self, user: User) -> list[UserClaim]:
        pass

    @abstractmethod
    async def add_claims(self, user: User, claims: Iterable[UserClaim]) -> None:
        pass

    @abstractmethod
    async def remove_claims(self, user: User, claims: Iterable[UserClaim]) -> None:
        pass

    @abstractmethod
    async def ensure_role(self, name: str) -> bool:
        """Create the role if it does not exist. Returns True when created."""


class SqlIdentityStore(IdentityStore):
    def __init__(
        self,
        session: Session,
        security_config: SecurityConfig,
        hasher: PasswordHasher | None = None,
    ) -> None:
        self._session = session
        self._security = security_config
        self._hasher = hasher or PasswordHasher(type=Type.ID)

    async def create_user(
        self,
        username: str,
        email: str,
        password: str | None = None,
        email_confirmed: bool = False,
    ) -> IdentityResult:
        errors = self._validate_user(username, email)
        if password is not None:
            errors.extend(validate_password(password, self._security.password))
        if errors:
            return IdentityResult.failed(*errors)

        password_hash = None
        if password is not None:
            password_hash = await asyncio.to_thread(self._hasher.hash, password)

        row = UserTable(
            username=username,
            normalized_username=normalize(username),
            email=email,
            normalized_email=normalize(email),
            email_confirmed=email_confirmed,
            password_hash=password_hash,
        )
        try:
            self._session.add(row)
            self._session.commit()
            self._session.refresh(row)
        except IntegrityError:
            # Lost a race with a concurrent registration for the same name.
            self._session.rollback()
            return IdentityResult.failed(
                IdentityError("DuplicateEmail", f"Email '{email}' is already taken.")
            )
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to create user") from exc

        logger.debug(f"Created user {row.id}")
        return IdentityResult.success(_to_user(row))

    async def delete_user(self, user: User) -> None:
        try:
            for link in self._session.exec(
                select(UserRoleTable).where(UserRoleTable.user_id == user.id)
            ).all():
                self._session.delete(link)
            for claim in self._session.exec(
                select(UserClaimTable).where(UserClaimTable.user_id == user.id)
            ).all():
                self._session.delete(claim)
            row = self._session.get(UserTable, user.id)
            if row is not None:
                self._session.delete(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to delete user") from exc

    async def find_by_email(self, email: str) -> User | None:
        if not email:
            return None
        row = self._first(
            select(UserTable).where(UserTable.normalized_email == normalize(email))
        )
        return _to_user(row) if row else None

    async def find_by_id(self, user_id: str) -> User | None:
        if not user_id:
            return None
        try:
            row = self._session.get(UserTable, user_id)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load user") from exc
        return _to_user(row) if row else None

    async def find_by_username(self, username: str) -> User | None:
        if not username:
            return None
        row = self._first(
            select(UserTable).where(
                UserTable.normalized_username == normalize(username)
            )
        )
        return _to_user(row) if row else None

    async def check_password(self, user: User, password: str) -> SignInResult:
        row = self._session.get(UserTable, user.id)
        if row is None:
            return SignInResult(succeeded=False)

        if self._security.require_confirmed_email and not row.email_confirmed:
            return SignInResult(succeeded=False, is_not_allowed=True)

        if not row.password_hash or not password:
            return SignInResult(succeeded=False)

        try:
            await asyncio.to_thread(self._hasher.verify, row.password_hash, password)
        except (VerificationError, InvalidHashError):
            return SignInResult(succeeded=False)

        if self._hasher.check_needs_rehash(row.password_hash):
            row.password_hash = await asyncio.to_thread(self._hasher.hash, password)
            row.updated_at = utcnow()
            self._commit(row, "Failed to update password hash")

        return SignInResult(succeeded=True)

    async def get_roles(self, user: User) -> list[str]:
        stmt = (
            select(RoleTable.name)
            .join(UserRoleTable, UserRoleTable.role_id == RoleTable.id)
            .where(UserRoleTable.user_id == user.id)
            .order_by(RoleTable.name)
        )
        try:
            return list(self._session.exec(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load roles") from exc

    async def add_to_role(self, user: User, role: str) -> IdentityResult:
        role_row = self._find_role(role)
        if role_row is None:
            return IdentityResult.failed(
                IdentityError("RoleNotFound", f"Role {role} does not exist.")
            )

        if self._session.get(UserRoleTable, (user.id, role_row.id)) is not None:
            return IdentityResult.failed(
                IdentityError("UserAlreadyInRole", f"User already in role '{role}'.")
            )

        self._commit(
            UserRoleTable(user_id=user.id, role_id=role_row.id),
            "Failed to assign role",
        )
        return IdentityResult.success(user)

    async def remove_from_role(self, user: User, role: str) -> IdentityResult:
        role_row = self._find_role(role)
        link = (
            self._session.get(UserRoleTable, (user.id, role_row.id))
            if role_row
            else None
        )
        if link is None:
            return IdentityResult.failed(
                IdentityError("UserNotInRole", f"User is not in role '{role}'.")
            )

        try:
            self._session.delete(link)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to remove role") from exc
        return IdentityResult.success(user)

    async def get_claims(self, user: User) -> list[UserClaim]:
        try:
            rows = self._session.exec(
                select(UserClaimTable)
                .where(UserClaimTable.user_id == user.id)
                .order_by(UserClaimTable.id)
            ).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load claims") from exc
        return [UserClaim(claim_type=r.claim_type, claim_value=r.claim_value) for r in rows]

    async def add_claims(self, user: User, claims: Iterable[UserClaim]) -> None:
        try:
            for claim in claims:
                self._session.add(
                    UserClaimTable(
                        user_id=user.id,
                        claim_type=claim.claim_type,
                        claim_value=claim.claim_value,
                    )
                )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to add claims") from exc

    async def remove_claims(self, user: User, claims: Iterable[UserClaim]) -> None:
        try:
            for claim in claims:
                rows = self._session.exec(
                    select(UserClaimTable).where(
                        UserClaimTable.user_id == user.id,
                        UserClaimTable.claim_type == claim.claim_type,
                        UserClaimTable.claim_value == claim.claim_value,
                    )
                ).all()
                for row in rows:
                    self._session.delete(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Failed to remove claims") from exc

    async def ensure_role(self, name: str) -> bool:
        if self._find_role(name) is not None:
            return False
        self._commit(RoleTable(name=name), f"Failed to create role {name}")
        logger.info(f"Created role {name}")
        return True

    def _validate_user(self, username: str, email: str) -> list[IdentityError]:
        errors = []
        if not username or not ALLOWED_USERNAME_CHARS.match(username):
            errors.append(
                IdentityError(
                    "InvalidUserName",
                    f"Username '{username}' is invalid, can only contain letters or digits.",
                )
            )
        elif self._first(
            select(UserTable).where(
                UserTable.normalized_username == normalize(username)
            )
        ):
            errors.append(
                IdentityError(
                    "DuplicateUserName", f"Username '{username}' is already taken."
                )
            )

        if not email or not EMAIL_PATTERN.match(email):
            errors.append(IdentityError("InvalidEmail", f"Email '{email}' is invalid."))
        elif self._first(
            select(UserTable).where(UserTable.normalized_email == normalize(email))
        ):
            errors.append(
                IdentityError("DuplicateEmail", f"Email '{email}' is already taken.")
            )
        return errors

    def _find_role(self, name: str) -> RoleTable | None:
        return self._first(select(RoleTable).where(RoleTable.name == name))

    def _first(self, stmt):
        try:
            return self._session.exec(stmt).first()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError("Identity store query failed") from exc

    def _commit(self, row, message: str) -> None:
        try:
            self._session.add(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise PersistenceError(message) from exc


def _to_user(row: UserTable) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        email_confirmed=row.email_confirmed,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )

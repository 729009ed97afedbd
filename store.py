"""In-memory identity and task stores.

Both stores implement the same record contract (create, get, get by
owner, update, delete, delete by owner, counts) and can be swapped for a
database-backed implementation later.  All mutations go through the
store, which issues identifiers, runs the record rules on every write
and merges partial updates from explicit patch structures, so fields
outside a patch (id, owner, created_at) never change.

Lookups that miss return ``None`` rather than raising.  Every store
guards its state with its own lock; instances are created per
application so tests get isolated data.
"""
from __future__ import annotations

import threading
from typing import Generic, TypeVar

from pydantic import BaseModel

from models import IdIssuer, NewTask, NewUser, Task, TaskPatch, User, UserPatch
from validators import ValidationReport, validate_task, validate_user

R = TypeVar("R", bound=BaseModel)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class RecordValidationError(Exception):
    """Raised when a record about to be written breaks a record rule."""

    def __init__(self, report: ValidationReport) -> None:
        self.report = report
        super().__init__(report.summary())


class DuplicateEmailError(Exception):
    """Raised when an email is already registered."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Email already registered: {email}")


# ---------------------------------------------------------------------------
# Shared record store
# ---------------------------------------------------------------------------

class RecordStore(Generic[R]):
    """Thread-safe in-memory CRUD over records keyed by ``id``."""

    def __init__(self, issuer: IdIssuer | None = None) -> None:
        self._records: dict[str, R] = {}
        self._issuer = issuer or IdIssuer()
        self._lock = threading.RLock()

    # -- hooks ---------------------------------------------------------------

    def _owner_of(self, record: R) -> str:
        raise NotImplementedError

    def _validate_or_raise(self, record: R) -> None:
        raise NotImplementedError

    # -- helpers -------------------------------------------------------------

    def _insert(self, record: R) -> R:
        self._validate_or_raise(record)
        self._records[record.id] = record
        return record

    def _merge(self, existing: R, patch: BaseModel) -> R:
        update_data = patch.model_dump(exclude_unset=True)
        if not update_data:
            return existing
        merged = existing.model_dump()
        merged.update(update_data)
        updated = type(existing).model_validate(merged)
        self._validate_or_raise(updated)
        return updated

    # -- CRUD ----------------------------------------------------------------

    def get(self, record_id: str) -> R | None:
        """Retrieve a record by id, or None."""
        with self._lock:
            return self._records.get(record_id)

    def get_by_owner(self, owner_id: str) -> list[R]:
        """All records belonging to *owner_id*, oldest first."""
        with self._lock:
            items = [r for r in self._records.values() if self._owner_of(r) == owner_id]
        items.sort(key=lambda r: (r.created_at, r.id))
        return items

    def list_all(self) -> list[R]:
        with self._lock:
            items = list(self._records.values())
        items.sort(key=lambda r: (r.created_at, r.id))
        return items

    def update(self, record_id: str, patch: BaseModel) -> R | None:
        """Apply the fields set on *patch*. None if the record is absent."""
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                return None
            updated = self._merge(existing, patch)
            self._records[record_id] = updated
            return updated

    def delete(self, record_id: str) -> R | None:
        """Delete a record and return it, or None if it was absent."""
        with self._lock:
            return self._records.pop(record_id, None)

    def delete_by_owner(self, owner_id: str) -> list[R]:
        """Delete every record of *owner_id* and return them."""
        with self._lock:
            doomed = self.get_by_owner(owner_id)
            for record in doomed:
                del self._records[record.id]
            return doomed

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def count_by_owner(self, owner_id: str) -> int:
        with self._lock:
            return sum(1 for r in self._records.values() if self._owner_of(r) == owner_id)

    def clear(self) -> None:
        """Remove all records (useful for testing)."""
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# Identity store
# ---------------------------------------------------------------------------

class UserStore(RecordStore[User]):
    """Users keyed by id, with a case-insensitive unique email index.

    A user is its own owner, so ``get_by_owner(user_id)`` is either
    ``[user]`` or ``[]``.
    """

    def __init__(self, issuer: IdIssuer | None = None) -> None:
        super().__init__(issuer)
        self._by_email: dict[str, str] = {}  # email -> user_id

    def _owner_of(self, record: User) -> str:
        return record.id

    def _validate_or_raise(self, record: User) -> None:
        report = validate_user(record)
        if not report.passed:
            raise RecordValidationError(report)

    def create(self, payload: NewUser, password_hash: str) -> User:
        """Store a new user. Raises DuplicateEmailError if the email is taken.

        Branches: REG-SUCCESS, REG-DUP
        """
        email = payload.email.strip().lower()
        with self._lock:
            if email in self._by_email:                           # REG-DUP
                raise DuplicateEmailError(email)
            user = self._insert(
                User(
                    id=self._issuer.issue(),
                    email=email,
                    password_hash=password_hash,
                    created_at=payload.created_at,
                )
            )
            self._by_email[email] = user.id                       # REG-SUCCESS
            return user

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            user_id = self._by_email.get(email.strip().lower())
            return None if user_id is None else self._records.get(user_id)

    def update(self, record_id: str, patch: UserPatch) -> User | None:
        if patch.email is not None:
            patch = patch.model_copy(update={"email": patch.email.strip().lower()})
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                return None
            taken_by = self._by_email.get(patch.email) if patch.email else None
            if taken_by is not None and taken_by != record_id:
                raise DuplicateEmailError(patch.email)
            updated = super().update(record_id, patch)
            if updated.email != existing.email:
                del self._by_email[existing.email]
                self._by_email[updated.email] = updated.id
            return updated

    def delete(self, record_id: str) -> User | None:
        with self._lock:
            user = super().delete(record_id)
            if user is not None:
                self._by_email.pop(user.email, None)
            return user

    def delete_by_owner(self, owner_id: str) -> list[User]:
        with self._lock:
            user = self.delete(owner_id)
            return [] if user is None else [user]

    def clear(self) -> None:
        with self._lock:
            super().clear()
            self._by_email.clear()


# ---------------------------------------------------------------------------
# Task store
# ---------------------------------------------------------------------------

class TaskStore(RecordStore[Task]):
    """Tasks keyed by id; each belongs to exactly one owner."""

    def _owner_of(self, record: Task) -> str:
        return record.owner_id

    def _validate_or_raise(self, record: Task) -> None:
        report = validate_task(record)
        if not report.passed:
            raise RecordValidationError(report)

    def create(self, payload: NewTask) -> Task:
        """Create a new task from an already validated payload."""
        with self._lock:
            return self._insert(
                Task(
                    id=self._issuer.issue(),
                    title=payload.title,
                    description=payload.description,
                    completed=payload.completed,
                    owner_id=payload.owner_id,
                )
            )

    def update(self, record_id: str, patch: TaskPatch) -> Task | None:
        """Partially update a task. Only fields set on *patch* change."""
        return super().update(record_id, patch)

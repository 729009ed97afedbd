"""Task manager models.

Pydantic models for users, tasks, tokens and the JSON envelopes the API
returns. No business logic lives here -- only structure, identifier
issuance and the explicit patch shapes that say which fields of a
record may change after creation.

JSON field names are camelCase (``ownerId``, ``createdAt``); Python
attributes stay snake_case.
"""
from __future__ import annotations

import os
import re
import threading
import time
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

IDENTIFIER_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_identifier(value: object) -> bool:
    """True when *value* is a syntactically valid store identifier."""
    return isinstance(value, str) and bool(IDENTIFIER_PATTERN.match(value))


class IdIssuer:
    """Issues 24-hex-digit identifiers.

    Layout: 4-byte seconds timestamp, 5-byte random prefix fixed per
    issuer, 3-byte counter. Issuance is serialized, and the
    (timestamp, counter) pair only ever grows, so identifiers from one
    issuer are unique and sort in creation order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._prefix = os.urandom(5).hex()
        self._ts = 0
        self._counter = int.from_bytes(os.urandom(3), "big")

    def issue(self) -> str:
        with self._lock:
            now = int(time.time())
            if now > self._ts:
                self._ts = now
            self._counter += 1
            if self._counter > 0xFFFFFF:
                # counter exhausted within one second: borrow the next one
                self._ts += 1
                self._counter = 0
            return f"{self._ts & 0xFFFFFFFF:08x}{self._prefix}{self._counter:06x}"


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class User(_ApiModel):
    """Full user record as stored. Never returned by the API."""

    id: str
    email: str
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class UserPublic(_ApiModel):
    """User record without the password hash, for API responses."""

    id: str
    email: str
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserPublic:
        return cls(id=user.id, email=user.email, created_at=user.created_at)


class Task(_ApiModel):
    """A to-do item owned by exactly one user."""

    id: str
    title: str
    description: str = ""
    completed: bool = False
    owner_id: str
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Sanitized inputs (outputs of the validation pipeline)
# ---------------------------------------------------------------------------

class NewUser(BaseModel):
    """A validated registration: normalized email, raw password."""

    email: str
    password: str
    created_at: datetime = Field(default_factory=_utcnow)


class Credentials(BaseModel):
    email: str
    password: str


class NewTask(BaseModel):
    """A validated task with defaults applied."""

    title: str
    description: str = ""
    completed: bool = False
    owner_id: str


class TaskPatch(BaseModel):
    """Updatable task fields. Only fields explicitly set are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    completed: bool | None = None


class UserPatch(BaseModel):
    """Updatable user fields. Only fields explicitly set are applied."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = None


class TokenClaims(BaseModel):
    """Identity carried by a verified bearer token."""

    owner_id: str
    email: str


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------

class ErrorResponse(_ApiModel):
    success: bool = False
    message: str


class UserResponse(_ApiModel):
    success: bool = True
    message: str | None = None
    user: UserPublic


class LoginResponse(_ApiModel):
    """Response from a successful login."""

    success: bool = True
    message: str = "Login successful"
    token: str
    user: UserPublic


class TaskResponse(_ApiModel):
    success: bool = True
    message: str | None = None
    task: Task


class TaskListResponse(_ApiModel):
    success: bool = True
    tasks: list[Task]


class UserListResponse(_ApiModel):
    success: bool = True
    count: int
    users: list[UserPublic]


class CountedTaskListResponse(_ApiModel):
    success: bool = True
    count: int
    tasks: list[Task]


class UserTasksResponse(_ApiModel):
    success: bool = True
    user_id: str
    count: int
    tasks: list[Task]


class DatabaseStats(_ApiModel):
    total_users: int
    total_tasks: int
    tasks_completed: int
    tasks_pending: int
    caller_tasks: int | None = None


class DatabaseStatsResponse(_ApiModel):
    success: bool = True
    stats: DatabaseStats

"""Shared fixtures for task manager tests."""
from __future__ import annotations

import pytest

from auth import hash_password
from models import IdIssuer, NewTask, NewUser
from store import TaskStore, UserStore


TEST_SECRET = "test-secret-key-for-testing-0123456789"
VALID_PASSWORD = "secureP@ss1"


@pytest.fixture
def issuer() -> IdIssuer:
    return IdIssuer()


@pytest.fixture
def users() -> UserStore:
    return UserStore()


@pytest.fixture
def tasks() -> TaskStore:
    return TaskStore()


@pytest.fixture
def password_hash() -> str:
    """One hash shared by a test, PBKDF2 being deliberately slow."""
    return hash_password(VALID_PASSWORD)


@pytest.fixture
def alice(users, password_hash):
    return users.create(NewUser(email="alice@example.com", password=VALID_PASSWORD),
                        password_hash)


@pytest.fixture
def bob(users, password_hash):
    return users.create(NewUser(email="bob@example.com", password=VALID_PASSWORD),
                        password_hash)


@pytest.fixture
def sample_task_payload(alice) -> NewTask:
    """A minimal valid task owned by alice."""
    return NewTask(title="Buy milk", owner_id=alice.id)

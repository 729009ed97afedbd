"""FastAPI REST endpoints.

Routes
------
POST   /api/auth/register          Register a new user
POST   /api/auth/login             Log in and receive a bearer token
GET    /api/auth/me                Current user profile

GET    /api/tasks                  List the caller's tasks
POST   /api/tasks                  Create a task
GET    /api/tasks/{id}             Retrieve one of the caller's tasks
PUT    /api/tasks/{id}             Partially update one of the caller's tasks
DELETE /api/tasks/{id}             Delete one of the caller's tasks

Debug routes (only mounted when ``enable_debug_routes`` is set)
-------------------------------------------------------------
GET    /api/debug/users            All users (public fields only)
GET    /api/debug/tasks            All tasks
GET    /api/debug/database-stats   Store statistics
GET    /api/debug/user/{id}/tasks  Tasks of one user

Handlers raise tagged errors from ``errors``; the app factory renders
them, so no handler builds an error response itself.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request

from auth import create_token, hash_password, verify_password
from config import Settings
from errors import NotFound, Unauthenticated, ValidationError
from models import (
    CountedTaskListResponse,
    DatabaseStats,
    DatabaseStatsResponse,
    ErrorResponse,
    LoginResponse,
    TaskListResponse,
    TaskResponse,
    TokenClaims,
    UserListResponse,
    UserPublic,
    UserResponse,
    UserTasksResponse,
)
from middleware import optional_auth, require_auth
from store import DuplicateEmailError, TaskStore, UserStore
from validators import (
    check_ownership,
    validate_login,
    validate_registration,
    validate_task_create,
    validate_task_update,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_user_store(request: Request) -> UserStore:
    return request.app.state.users


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.tasks


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _errors(*codes: int) -> dict[int | str, dict[str, Any]]:
    return {code: {"model": ErrorResponse} for code in codes}


# ---------------------------------------------------------------------------
# Auth router
# ---------------------------------------------------------------------------

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


@auth_router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    responses=_errors(400),
)
def register(
    payload: Any = Body(None),
    users: UserStore = Depends(get_user_store),
) -> UserResponse:
    """Register a new user account."""
    new_user = validate_registration(payload)
    if users.get_by_email(new_user.email) is not None:
        raise ValidationError("User with this email already exists")

    try:
        user = users.create(new_user, hash_password(new_user.password))
    except DuplicateEmailError as e:
        # lost a race with a concurrent registration
        raise ValidationError("User with this email already exists") from e

    logger.info("Registered user %s", user.id)
    return UserResponse(
        message="User registered successfully",
        user=UserPublic.from_user(user),
    )


@auth_router.post("/login", response_model=LoginResponse, responses=_errors(400, 401))
def login(
    payload: Any = Body(None),
    users: UserStore = Depends(get_user_store),
    settings: Settings = Depends(get_settings),
) -> LoginResponse:
    """Authenticate and receive a bearer token valid for 24 hours."""
    credentials = validate_login(payload)
    user = users.get_by_email(credentials.email)

    if user is None or not verify_password(credentials.password, user.password_hash):
        logger.info("Rejected login attempt")
        raise Unauthenticated("Invalid email or password")

    token = create_token(user.id, user.email, settings.jwt_secret)
    logger.info("Login: %s", user.id)
    return LoginResponse(token=token, user=UserPublic.from_user(user))


@auth_router.get(
    "/me",
    response_model=UserResponse,
    response_model_exclude_none=True,
    responses=_errors(401),
)
def get_me(
    claims: TokenClaims = Depends(require_auth),
    users: UserStore = Depends(get_user_store),
) -> UserResponse:
    """Get the current authenticated user's profile."""
    user = users.get(claims.owner_id)
    if user is None:
        raise Unauthenticated("Invalid or expired token")
    return UserResponse(user=UserPublic.from_user(user))


# ---------------------------------------------------------------------------
# Task router
# ---------------------------------------------------------------------------

tasks_router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@tasks_router.get("", response_model=TaskListResponse, responses=_errors(401))
def list_tasks(
    claims: TokenClaims = Depends(require_auth),
    tasks: TaskStore = Depends(get_task_store),
) -> TaskListResponse:
    """List every task owned by the caller."""
    return TaskListResponse(tasks=tasks.get_by_owner(claims.owner_id))


@tasks_router.post(
    "",
    response_model=TaskResponse,
    status_code=201,
    responses=_errors(400, 401),
)
def create_task(
    payload: Any = Body(None),
    claims: TokenClaims = Depends(require_auth),
    tasks: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Create a task owned by the caller."""
    task = tasks.create(validate_task_create(payload, claims.owner_id))
    logger.info("Created task %s for %s", task.id, claims.owner_id)
    return TaskResponse(message="Task created successfully", task=task)


@tasks_router.get(
    "/{task_id}",
    response_model=TaskResponse,
    response_model_exclude_none=True,
    responses=_errors(401, 403, 404),
)
def get_task(
    task_id: str,
    claims: TokenClaims = Depends(require_auth),
    tasks: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Retrieve a single task owned by the caller."""
    task = check_ownership(tasks.get(task_id), claims.owner_id)
    return TaskResponse(task=task)


@tasks_router.put(
    "/{task_id}",
    response_model=TaskResponse,
    responses=_errors(400, 401, 403, 404),
)
def update_task(
    task_id: str,
    payload: Any = Body(None),
    claims: TokenClaims = Depends(require_auth),
    tasks: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Partially update a task. Omitted fields are left unchanged."""
    check_ownership(tasks.get(task_id), claims.owner_id)
    patch = validate_task_update(payload)

    updated = tasks.update(task_id, patch)
    if updated is None:
        # deleted between the ownership check and the write
        raise NotFound("Task not found")

    logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(patch.model_fields_set)))
    return TaskResponse(message="Task updated successfully", task=updated)


@tasks_router.delete(
    "/{task_id}",
    response_model=TaskResponse,
    responses=_errors(401, 403, 404),
)
def delete_task(
    task_id: str,
    claims: TokenClaims = Depends(require_auth),
    tasks: TaskStore = Depends(get_task_store),
) -> TaskResponse:
    """Delete a task and return the deleted record."""
    check_ownership(tasks.get(task_id), claims.owner_id)

    deleted = tasks.delete(task_id)
    if deleted is None:
        raise NotFound("Task not found")

    logger.info("Deleted task %s", task_id)
    return TaskResponse(message="Task deleted successfully", task=deleted)


# ---------------------------------------------------------------------------
# Debug router
# ---------------------------------------------------------------------------

debug_router = APIRouter(prefix="/api/debug", tags=["debug"])


@debug_router.get("/users", response_model=UserListResponse)
def debug_users(users: UserStore = Depends(get_user_store)) -> UserListResponse:
    """All users, without password hashes."""
    items = [UserPublic.from_user(u) for u in users.list_all()]
    return UserListResponse(count=len(items), users=items)


@debug_router.get("/tasks", response_model=CountedTaskListResponse)
def debug_tasks(tasks: TaskStore = Depends(get_task_store)) -> CountedTaskListResponse:
    items = tasks.list_all()
    return CountedTaskListResponse(count=len(items), tasks=items)


@debug_router.get(
    "/database-stats",
    response_model=DatabaseStatsResponse,
    response_model_exclude_none=True,
)
def debug_database_stats(
    claims: TokenClaims | None = Depends(optional_auth),
    users: UserStore = Depends(get_user_store),
    tasks: TaskStore = Depends(get_task_store),
) -> DatabaseStatsResponse:
    """Store statistics; authenticated callers also see their own task count."""
    all_tasks = tasks.list_all()
    completed = sum(1 for t in all_tasks if t.completed)
    return DatabaseStatsResponse(
        stats=DatabaseStats(
            total_users=users.count(),
            total_tasks=len(all_tasks),
            tasks_completed=completed,
            tasks_pending=len(all_tasks) - completed,
            caller_tasks=(
                tasks.count_by_owner(claims.owner_id) if claims is not None else None
            ),
        )
    )


@debug_router.get(
    "/user/{user_id}/tasks",
    response_model=UserTasksResponse,
    responses=_errors(404),
)
def debug_user_tasks(
    user_id: str,
    users: UserStore = Depends(get_user_store),
    tasks: TaskStore = Depends(get_task_store),
) -> UserTasksResponse:
    if users.get(user_id) is None:
        raise NotFound("User not found")
    items = tasks.get_by_owner(user_id)
    return UserTasksResponse(user_id=user_id, count=len(items), tasks=items)

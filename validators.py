"""Validation pipeline for users and tasks.

Two layers of named, executable rules:

Request rules     run by handlers against inbound JSON payloads.  Every
                  rule is evaluated (collect-all) and the messages of all
                  failing rules are joined into one ``ValidationError``.
Record rules      run by the stores against every record they write.  A
                  failure means a bug upstream, not bad client input.

Sanitizers
----------
validate_registration   -> NewUser
validate_login          -> Credentials
validate_task_create    -> NewTask
validate_task_update    -> TaskPatch
check_ownership         -> Task (or NotFound / Forbidden)
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from errors import Forbidden, NotFound, ValidationError
from models import (
    Credentials,
    NewTask,
    NewUser,
    Task,
    TaskPatch,
    is_valid_identifier,
)

# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 6
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
UPDATABLE_TASK_FIELDS = ("title", "description", "completed")


# ---------------------------------------------------------------------------
# Rule: a named, executable predicate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    """A named validation rule.

    For request rules ``description`` doubles as the client-facing
    message reported when the rule fails.
    """

    id: str
    name: str
    description: str
    check: Callable[[Any], bool]


# ---------------------------------------------------------------------------
# Primitive checks
# ---------------------------------------------------------------------------

def is_valid_string(value: Any, min_length: int = 1,
                    max_length: int | None = None) -> bool:
    """String whose trimmed length lies within the given bounds."""
    if not isinstance(value, str):
        return False
    length = len(value.strip())
    if length < min_length:
        return False
    return max_length is None or length <= max_length


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_boolean(value: Any) -> bool:
    return isinstance(value, bool)


def _is_valid_description(value: Any) -> bool:
    return is_valid_string(value, 0, MAX_DESCRIPTION_LENGTH)


def _absent_or(key: str, check: Callable[[Any], bool]) -> Callable[[Mapping], bool]:
    """Rule check that passes when *key* is absent, else applies *check*."""
    return lambda data: key not in data or check(data[key])


# ---------------------------------------------------------------------------
# Request rules
# ---------------------------------------------------------------------------

REGISTRATION_RULES: list[Rule] = [
    Rule(
        id="REQ-REG-EMAIL",
        name="registration_email_valid",
        description="Valid email is required",
        check=lambda d: is_valid_email(d.get("email")),
    ),
    Rule(
        id="REQ-REG-PASSWORD",
        name="registration_password_length",
        description=(
            f"Password is required and must be at least "
            f"{MIN_PASSWORD_LENGTH} characters"
        ),
        check=lambda d: is_valid_string(d.get("password"), MIN_PASSWORD_LENGTH),
    ),
]

LOGIN_RULES: list[Rule] = [
    Rule(
        id="REQ-LOGIN-EMAIL",
        name="login_email_valid",
        description="Valid email is required",
        check=lambda d: is_valid_email(d.get("email")),
    ),
    Rule(
        id="REQ-LOGIN-PASSWORD",
        name="login_password_present",
        description="Password is required",
        check=lambda d: is_valid_string(d.get("password"), 1),
    ),
]

TASK_CREATE_RULES: list[Rule] = [
    Rule(
        id="REQ-TASK-TITLE",
        name="task_title_required",
        description=(
            f"Title is required and must be between 1-{MAX_TITLE_LENGTH} characters"
        ),
        check=lambda d: is_valid_string(d.get("title"), 1, MAX_TITLE_LENGTH),
    ),
    Rule(
        id="REQ-TASK-DESC",
        name="task_description_bounded",
        description=(
            f"Description must be a string with max "
            f"{MAX_DESCRIPTION_LENGTH} characters"
        ),
        check=_absent_or("description", _is_valid_description),
    ),
    Rule(
        id="REQ-TASK-COMPLETED",
        name="task_completed_boolean",
        description="Completed must be a boolean",
        check=_absent_or("completed", is_valid_boolean),
    ),
    Rule(
        id="REQ-TASK-OWNER",
        name="task_owner_identifier",
        description="Valid owner ID is required",
        check=lambda d: is_valid_identifier(d.get("owner_id")),
    ),
]

TASK_UPDATE_RULES: list[Rule] = [
    Rule(
        id="REQ-PATCH-NONEMPTY",
        name="patch_has_field",
        description=(
            "At least one field (title, description, or completed) "
            "must be provided"
        ),
        check=lambda d: any(k in d for k in UPDATABLE_TASK_FIELDS),
    ),
    Rule(
        id="REQ-PATCH-TITLE",
        name="patch_title_bounded",
        description=f"Title must be between 1-{MAX_TITLE_LENGTH} characters",
        check=_absent_or(
            "title", lambda v: is_valid_string(v, 1, MAX_TITLE_LENGTH)
        ),
    ),
    Rule(
        id="REQ-PATCH-DESC",
        name="patch_description_bounded",
        description=(
            f"Description must be a string with max "
            f"{MAX_DESCRIPTION_LENGTH} characters"
        ),
        check=_absent_or("description", _is_valid_description),
    ),
    Rule(
        id="REQ-PATCH-COMPLETED",
        name="patch_completed_boolean",
        description="Completed must be a boolean",
        check=_absent_or("completed", is_valid_boolean),
    ),
]


# ---------------------------------------------------------------------------
# Record rules
# ---------------------------------------------------------------------------

def _has_timestamp(r: Any) -> bool:
    return getattr(r, "created_at", None) is not None


def _user_email_normalized(u: Any) -> bool:
    email = getattr(u, "email", "")
    return isinstance(email, str) and email == email.strip().lower()


def _user_has_password_hash(u: Any) -> bool:
    salt, sep, digest = (getattr(u, "password_hash", "") or "").partition("$")
    return bool(sep and salt and digest)


def _task_title_valid(t: Any) -> bool:
    title = getattr(t, "title", None)
    return is_valid_string(title, 1, MAX_TITLE_LENGTH) and title == title.strip()


USER_RULES: list[Rule] = [
    Rule(
        id="USER-ID",
        name="user_has_identifier",
        description="User id must be a valid identifier",
        check=lambda u: is_valid_identifier(getattr(u, "id", None)),
    ),
    Rule(
        id="USER-EMAIL-FMT",
        name="user_email_valid",
        description="User email must match local@domain.tld",
        check=lambda u: is_valid_email(getattr(u, "email", None)),
    ),
    Rule(
        id="USER-EMAIL-NORM",
        name="user_email_normalized",
        description="User email must be trimmed and lower-cased",
        check=_user_email_normalized,
    ),
    Rule(
        id="USER-HASH",
        name="user_has_password_hash",
        description="User must have a password hash in salt$digest format",
        check=_user_has_password_hash,
    ),
    Rule(
        id="USER-CREATED",
        name="user_has_created_at",
        description="User must have created_at",
        check=_has_timestamp,
    ),
]

TASK_RULES: list[Rule] = [
    Rule(
        id="TASK-ID",
        name="task_has_identifier",
        description="Task id must be a valid identifier",
        check=lambda t: is_valid_identifier(getattr(t, "id", None)),
    ),
    Rule(
        id="TASK-OWNER",
        name="task_has_owner",
        description="Task owner must be a valid identifier",
        check=lambda t: is_valid_identifier(getattr(t, "owner_id", None)),
    ),
    Rule(
        id="TASK-TITLE",
        name="task_title_valid",
        description=f"Title must be trimmed and 1-{MAX_TITLE_LENGTH} characters",
        check=_task_title_valid,
    ),
    Rule(
        id="TASK-DESC",
        name="task_description_valid",
        description=f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
        check=lambda t: _is_valid_description(getattr(t, "description", None)),
    ),
    Rule(
        id="TASK-COMPLETED",
        name="task_completed_is_bool",
        description="completed field must be a boolean",
        check=lambda t: is_valid_boolean(getattr(t, "completed", None)),
    ),
    Rule(
        id="TASK-CREATED",
        name="task_has_created_at",
        description="Task must have created_at",
        check=_has_timestamp,
    ),
]


# ---------------------------------------------------------------------------
# Validation report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationResult:
    rule_id: str
    rule_name: str
    passed: bool
    description: str


@dataclass(frozen=True)
class ValidationReport:
    results: list[ValidationResult]

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.passed]

    def message(self) -> str:
        """Failing rule descriptions joined for a client response."""
        return ", ".join(f.description for f in self.failures)

    def summary(self) -> str:
        total = len(self.results)
        failed = len(self.failures)
        if failed == 0:
            return f"All {total} rules passed"
        lines = [f"{failed}/{total} rules failed:"]
        for f in self.failures:
            lines.append(f"  [{f.rule_id}] {f.rule_name}: {f.description}")
        return "\n".join(lines)


def evaluate(rules: list[Rule], subject: Any) -> ValidationReport:
    """Run every rule against *subject* and return a report."""
    results = []
    for rule in rules:
        try:
            passed = bool(rule.check(subject))
        except Exception:
            passed = False
        results.append(
            ValidationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=passed,
                description=rule.description,
            )
        )
    return ValidationReport(results=results)


def validate_user(user: Any) -> ValidationReport:
    """Run all user record rules against a user."""
    return evaluate(USER_RULES, user)


def validate_task(task: Any) -> ValidationReport:
    """Run all task record rules against a task."""
    return evaluate(TASK_RULES, task)


def _require(rules: list[Rule], data: Mapping[str, Any]) -> None:
    report = evaluate(rules, data)
    if not report.passed:
        raise ValidationError(report.message())


def _as_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValidationError("Request body must be a JSON object")
    return data


# ---------------------------------------------------------------------------
# Sanitizers
# ---------------------------------------------------------------------------

def validate_registration(data: Any) -> NewUser:
    """Validate and sanitize a registration payload."""
    data = _as_mapping(data)
    _require(REGISTRATION_RULES, data)
    return NewUser(
        email=data["email"].strip().lower(),
        password=data["password"],
    )


def validate_login(data: Any) -> Credentials:
    """Validate a login payload. The password is passed through untouched."""
    data = _as_mapping(data)
    _require(LOGIN_RULES, data)
    return Credentials(
        email=data["email"].strip().lower(),
        password=data["password"],
    )


def validate_task_create(data: Any, owner_id: str) -> NewTask:
    """Validate a task creation payload on behalf of *owner_id*.

    The owner always comes from the caller's identity; an ``owner_id``
    key in the body is ignored.
    """
    data = _as_mapping(data)
    _require(TASK_CREATE_RULES, {**data, "owner_id": owner_id})
    return NewTask(
        title=data["title"].strip(),
        description=data.get("description", ""),
        completed=data.get("completed", False),
        owner_id=owner_id,
    )


def validate_task_update(data: Any) -> TaskPatch:
    """Validate a partial task update.

    Fields absent from *data* stay unset on the returned patch, which
    the store reads as "leave unchanged".
    """
    data = _as_mapping(data)
    _require(TASK_UPDATE_RULES, data)
    fields: dict[str, Any] = {}
    if "title" in data:
        fields["title"] = data["title"].strip()
    if "description" in data:
        fields["description"] = data["description"]
    if "completed" in data:
        fields["completed"] = data["completed"]
    return TaskPatch(**fields)


def check_ownership(task: Task | None, owner_id: str) -> Task:
    """Return *task* if it exists and belongs to *owner_id*.

    Branches: OWN-MISSING, OWN-DENIED, OWN-OK
    """
    if task is None:                                              # OWN-MISSING
        raise NotFound("Task not found")
    if task.owner_id != owner_id:                                 # OWN-DENIED
        raise Forbidden("Access denied")
    return task                                                   # OWN-OK

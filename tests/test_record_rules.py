"""Record rule conformance tests.

Auto-verifies every record rule against known-good and known-bad users
and tasks. When a new rule is added to a rule list, the known-good
checks cover it without writing new test code.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from auth import hash_password
from models import Task, User
from validators import (
    LOGIN_RULES,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    REGISTRATION_RULES,
    TASK_CREATE_RULES,
    TASK_RULES,
    TASK_UPDATE_RULES,
    USER_RULES,
    Rule,
    evaluate,
    validate_task,
    validate_user,
)

VALID_PASSWORD = "secureP@ss1"
GOOD_HASH = hash_password(VALID_PASSWORD)


def _good_user(**overrides) -> User:
    """Build a known-valid user, optionally overriding fields."""
    defaults = dict(
        id="65a1f0c2aa11bb22cc33dd44",
        email="alice@example.com",
        password_hash=GOOD_HASH,
        created_at=datetime.now(timezone.utc),
    )
    defaults.update(overrides)
    return User(**defaults)


def _good_task(**overrides) -> Task:
    defaults = dict(
        id="65a1f0c2aa11bb22cc33dd99",
        title="Buy milk",
        description="2 litres",
        completed=False,
        owner_id="65a1f0c2aa11bb22cc33dd44",
        created_at=datetime.now(timezone.utc),
    )
    defaults.update(overrides)
    return Task(**defaults)


def _find_rule(rules: list[Rule], rule_id: str) -> Rule:
    for r in rules:
        if r.id == rule_id:
            return r
    raise ValueError(f"Rule not found: {rule_id}")


class TestAllRulesPassForValidRecords:

    def test_good_user_passes_all(self):
        report = validate_user(_good_user())
        assert report.passed, report.summary()

    def test_good_task_passes_all(self):
        report = validate_task(_good_task())
        assert report.passed, report.summary()

    def test_task_with_defaults_passes(self):
        task = Task(id="65a1f0c2aa11bb22cc33dd99", title="x",
                    owner_id="65a1f0c2aa11bb22cc33dd44")
        assert validate_task(task).passed

    @pytest.mark.parametrize("rule", USER_RULES, ids=lambda r: r.id)
    def test_user_rule_passes_for_valid(self, rule):
        assert rule.check(_good_user()) is True, f"Rule {rule.id} should pass"

    @pytest.mark.parametrize("rule", TASK_RULES, ids=lambda r: r.id)
    def test_task_rule_passes_for_valid(self, rule):
        assert rule.check(_good_task()) is True, f"Rule {rule.id} should pass"


class TestUserRuleDetection:
    """Each user rule should detect its specific violation."""

    @pytest.mark.parametrize("rule_id,update", [
        ("USER-ID", {"id": ""}),
        ("USER-ID", {"id": "65A1F0C2AA11BB22CC33DD44"}),
        ("USER-EMAIL-FMT", {"email": "not-an-email"}),
        ("USER-EMAIL-NORM", {"email": "Alice@Example.com"}),
        ("USER-EMAIL-NORM", {"email": " alice@example.com"}),
        ("USER-HASH", {"password_hash": ""}),
        ("USER-HASH", {"password_hash": "noseparator"}),
        ("USER-HASH", {"password_hash": "$digest"}),
        ("USER-CREATED", {"created_at": None}),
    ])
    def test_rule_detects_violation(self, rule_id, update):
        user = _good_user().model_copy(update=update)
        assert _find_rule(USER_RULES, rule_id).check(user) is False

    def test_only_violated_rule_fails(self):
        user = _good_user().model_copy(update={"password_hash": "noseparator"})
        report = validate_user(user)
        assert [f.rule_id for f in report.failures] == ["USER-HASH"]


class TestTaskRuleDetection:
    """Each task rule should detect its specific violation."""

    @pytest.mark.parametrize("rule_id,update", [
        ("TASK-ID", {"id": "short"}),
        ("TASK-OWNER", {"owner_id": None}),
        ("TASK-OWNER", {"owner_id": "alice"}),
        ("TASK-TITLE", {"title": ""}),
        ("TASK-TITLE", {"title": " padded "}),
        ("TASK-TITLE", {"title": "x" * (MAX_TITLE_LENGTH + 1)}),
        ("TASK-DESC", {"description": "d" * (MAX_DESCRIPTION_LENGTH + 1)}),
        ("TASK-DESC", {"description": None}),
        ("TASK-COMPLETED", {"completed": "yes"}),
        ("TASK-CREATED", {"created_at": None}),
    ])
    def test_rule_detects_violation(self, rule_id, update):
        task = _good_task().model_copy(update=update)
        assert _find_rule(TASK_RULES, rule_id).check(task) is False

    def test_description_trailing_spaces_pass(self):
        task = _good_task(description="d" * MAX_DESCRIPTION_LENGTH + "  ")
        assert _find_rule(TASK_RULES, "TASK-DESC").check(task) is True

    def test_boundaries_pass(self):
        task = _good_task(
            title="x" * MAX_TITLE_LENGTH,
            description="d" * MAX_DESCRIPTION_LENGTH,
        )
        assert validate_task(task).passed


class TestRequestRuleTables:
    """Rule tables are well-formed: unique ids, pass on a good payload."""

    @pytest.mark.parametrize("rules,payload", [
        (REGISTRATION_RULES, {"email": "a@b.co", "password": VALID_PASSWORD}),
        (LOGIN_RULES, {"email": "a@b.co", "password": "x"}),
        (TASK_CREATE_RULES, {"title": "t", "owner_id": "65a1f0c2aa11bb22cc33dd44"}),
        (TASK_UPDATE_RULES, {"completed": True}),
    ])
    def test_good_payload_passes(self, rules, payload):
        report = evaluate(rules, payload)
        assert report.passed, report.summary()

    @pytest.mark.parametrize(
        "rules",
        [REGISTRATION_RULES, LOGIN_RULES, TASK_CREATE_RULES, TASK_UPDATE_RULES,
         USER_RULES, TASK_RULES],
    )
    def test_rule_ids_unique(self, rules):
        ids = [r.id for r in rules]
        assert len(ids) == len(set(ids))


class TestValidationReport:

    def test_report_summary_all_pass(self):
        summary = validate_user(_good_user()).summary()
        assert summary == f"All {len(USER_RULES)} rules passed"

    def test_report_summary_with_failures(self):
        task = _good_task().model_copy(update={"title": "", "completed": None})
        report = validate_task(task)
        assert not report.passed
        assert len(report.failures) == 2
        summary = report.summary()
        assert summary.startswith(f"2/{len(TASK_RULES)} rules failed:")
        assert "[TASK-TITLE]" in summary
        assert "[TASK-COMPLETED]" in summary

    def test_message_joins_failures_in_rule_order(self):
        report = evaluate(REGISTRATION_RULES, {})
        assert report.message() == ", ".join(r.description for r in REGISTRATION_RULES)

    def test_raising_check_counts_as_failure(self):
        def explode(subject):
            raise KeyError("boom")

        rule = Rule(id="X-RAISE", name="raises", description="always raises",
                    check=explode)
        report = evaluate([rule], {})
        assert not report.passed
        assert report.failures[0].rule_id == "X-RAISE"

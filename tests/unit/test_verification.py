"""Unit tests for project verification reports."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
import requests

from linear_bookkeeper.reconciler.linear.client import (
    IssueSummary,
    LinearClient,
    LinearError,
    ProjectSummary,
)
from linear_bookkeeper.reconciler.linear.verification import (
    VerificationService,
    render_verification_report,
)

DESCRIPTION = "A real project description with content."


def _seed_project(fake_linear, *, issue_count: int, linked: bool, description: str) -> None:
    issue_ids = []
    for n in range(1, issue_count + 1):
        fake_linear.add_issue(f"issue-{n}", f"ENG-{n}")
        issue_ids.append(f"issue-{n}")
    fake_linear.add_project(
        id="proj-1", name="Acme Phase 5", description=description, issues=issue_ids
    )
    fake_linear.initiative_projects["init-1"] = ["proj-1"] if linked else []


def test_missing_project_short_circuits(fake_linear) -> None:
    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Nope", 3, initiative_id="init-1"
    )

    assert report.project.exists is False
    assert report.overall.passed is False
    assert report.overall.issues == ["Project not found: Nope"]
    assert report.issues.found == 0


def test_fully_correct_project_passes(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=2, linked=True, description=DESCRIPTION)
    security_id = fake_linear.add_label("team-1", "Security")
    npm_id = fake_linear.add_label("team-1", "npm")
    fake_linear.issue_labels["issue-1"] = [security_id, npm_id]

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "phase 5",
        2,
        {"ENG-1": ["security", "NPM"]},
        initiative_id="init-1",
    )

    assert report.overall.passed is True
    assert report.overall.issues == []
    assert report.project.name == "Acme Phase 5"
    assert report.project.linked_to_initiative is True
    assert report.project.description_length == len(DESCRIPTION)
    assert report.issues.found == 2
    assert report.issues.with_labels == 1


def test_count_mismatch_is_reported(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=5, linked=True, description=DESCRIPTION)

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme Phase 5", 10, initiative_id="init-1"
    )

    assert report.issues.found == 5
    assert report.overall.passed is False
    assert report.overall.issues == ["Expected 10 issues, found 5"]


def test_unlinked_and_undescribed_are_both_reported(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=1, linked=False, description="tbd")

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme", 1, initiative_id="init-1"
    )

    assert report.overall.passed is False
    assert report.overall.issues == [
        "Project not linked to initiative",
        "Project has no description",
    ]


def test_description_threshold_is_exclusive_and_configurable(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=0, linked=True, description="x" * 10)

    default = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme", 0, initiative_id="init-1"
    )
    relaxed = VerificationService(
        linear=fake_linear, min_description_length=5
    ).verify_project_creation("Acme", 0, initiative_id="init-1")

    assert default.project.has_description is False
    assert relaxed.project.has_description is True
    assert relaxed.overall.passed is True


def test_missing_labels_are_itemized(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=2, linked=True, description=DESCRIPTION)
    ci_id = fake_linear.add_label("team-1", "ci")
    fake_linear.issue_labels["issue-1"] = [ci_id]

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme",
        2,
        {"ENG-1": ["ci", "npm"], "ENG-2": ["security"], "ENG-99": ["ignored"]},
        initiative_id="init-1",
    )

    assert report.issues.without_labels == ["ENG-1: missing npm", "ENG-2: missing security"]
    assert report.issues.with_labels == 0
    assert report.overall.issues == ["2 issues missing labels"]
    assert report.overall.passed is False


def test_project_lookup_failure_is_reported_not_raised() -> None:
    linear = Mock(spec=LinearClient)
    linear.find_projects.side_effect = LinearError("Authentication required")

    report = VerificationService(linear=linear).verify_project_creation(
        "Acme", 1, initiative_id="init-1"
    )

    assert report.project.exists is False
    assert report.overall.passed is False
    assert report.overall.issues == ["Project lookup failed: Acme: Authentication required"]


def test_bulk_verification_uses_current_issue_count(fake_linear) -> None:
    fake_linear.add_issue("i1", "ENG-1")
    fake_linear.add_project(id="p1", name="Acme One", description=DESCRIPTION, issues=["i1"])
    fake_linear.add_project(id="p2", name="Acme Two", description="")
    fake_linear.add_project(id="p3", name="Unrelated", description="")
    fake_linear.initiative_projects["init-1"] = ["p1", "p2"]

    result = VerificationService(linear=fake_linear).verify_projects_for_initiative(
        "init-1", "acme"
    )

    assert result.summary.total == 2
    assert result.summary.passed == 1
    assert result.summary.failed == 1
    assert result.summary.issues == ["Acme Two: Project has no description"]
    assert [r.issues.expected for r in result.projects] == [1, 0]


def test_invalid_threshold_is_rejected(fake_linear) -> None:
    with pytest.raises(ValueError):
        VerificationService(linear=fake_linear, min_description_length=-1)


def test_render_report_lists_problems(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=0, linked=False, description=DESCRIPTION)
    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme", 0, initiative_id="init-1"
    )

    text = render_verification_report(report)

    assert "=== Project Verification: Acme Phase 5 ===" in text
    assert "Linked to Initiative: no" in text
    assert "Overall: FAILED" in text
    assert "  - Project not linked to initiative" in text


def _linked_project_mock() -> Mock:
    linear = Mock(spec=LinearClient)
    linear.find_projects.return_value = [
        ProjectSummary(id="p1", name="Acme", description=DESCRIPTION, state="started")
    ]
    linear.list_initiative_project_ids.return_value = ["p1"]
    return linear


def test_issue_lookup_failure_is_reported_not_raised() -> None:
    linear = _linked_project_mock()
    linear.list_project_issues.side_effect = requests.Timeout("timed out")

    report = VerificationService(linear=linear).verify_project_creation(
        "Acme", 2, initiative_id="init-1"
    )

    assert report.project.exists is True
    assert report.issues.found == 0
    assert report.overall.passed is False
    assert report.overall.issues == [
        "Issue lookup failed: timed out",
        "Expected 2 issues, found 0",
    ]


def test_bulk_issue_lookup_failure_fails_the_project_without_retry() -> None:
    linear = _linked_project_mock()
    linear.list_project_issues.side_effect = [
        requests.Timeout("timed out"),
        [IssueSummary(id="i1", identifier="ENG-1", title="Late")],
    ]

    result = VerificationService(linear=linear).verify_projects_for_initiative("init-1", "acme")

    assert linear.list_project_issues.call_count == 1
    assert result.summary.passed == 0
    assert result.summary.failed == 1
    assert result.summary.issues == ["Acme: Issue lookup failed: timed out"]
    assert result.projects[0].issues.found == 0


def test_empty_label_expectation_counts_as_labelled(fake_linear) -> None:
    _seed_project(fake_linear, issue_count=1, linked=True, description=DESCRIPTION)

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme", 1, {"ENG-1": []}, initiative_id="init-1"
    )

    assert report.issues.with_labels == 1
    assert report.issues.without_labels == []
    assert report.overall.passed is True


def test_verification_logs_at_info(fake_linear, info_logging) -> None:
    _seed_project(fake_linear, issue_count=1, linked=True, description=DESCRIPTION)

    report = VerificationService(linear=fake_linear).verify_project_creation(
        "Acme", 1, {"ENG-1": []}, initiative_id="init-1"
    )

    assert report.overall.passed is True
    assert "Project verified" in info_logging.getvalue()

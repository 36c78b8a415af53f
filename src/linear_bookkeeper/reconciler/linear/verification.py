"""Post-hoc verification of project structure.

Checks that a previously requested project actually converged:
- project exists and is linked to the initiative
- project has a non-trivial description
- the expected number of issues exists
- expected labels are present on each issue (optional)

All checks run independently so one report lists every problem found.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field

from linear_bookkeeper.reconciler.linear.client import (
    IssueSummary,
    LinearClient,
    ProjectSummary,
)
from linear_bookkeeper.reconciler.linear.initiative_service import InitiativeService
from linear_bookkeeper.reconciler.linear.label_service import LabelService

logger = logging.getLogger(__name__)

DEFAULT_MIN_DESCRIPTION_LENGTH = 10
ISSUE_PAGE_SIZE = 100


class ProjectCheck(BaseModel):
    id: str = Field(default="")
    name: str
    exists: bool = Field(default=False)
    linked_to_initiative: bool = Field(default=False)
    has_description: bool = Field(default=False)
    description_length: int = Field(default=0)
    state: str = Field(default="")


class IssueCheck(BaseModel):
    expected: int
    found: int = Field(default=0)
    with_labels: int = Field(default=0)
    without_labels: list[str] = Field(default_factory=list)


class OverallCheck(BaseModel):
    passed: bool = Field(default=True)
    issues: list[str] = Field(default_factory=list)

    def fail(self, message: str) -> None:
        self.passed = False
        self.issues.append(message)


class ProjectVerification(BaseModel):
    project: ProjectCheck
    issues: IssueCheck
    overall: OverallCheck = Field(default_factory=OverallCheck)


class VerificationSummary(BaseModel):
    total: int = Field(default=0)
    passed: int = Field(default=0)
    failed: int = Field(default=0)
    issues: list[str] = Field(default_factory=list)


class BulkVerification(BaseModel):
    projects: list[ProjectVerification] = Field(default_factory=list)
    summary: VerificationSummary = Field(default_factory=VerificationSummary)


class VerificationService:
    def __init__(
        self,
        *,
        linear: LinearClient,
        initiatives: InitiativeService | None = None,
        labels: LabelService | None = None,
        min_description_length: int = DEFAULT_MIN_DESCRIPTION_LENGTH,
    ) -> None:
        if min_description_length < 0:
            raise ValueError("min_description_length must be >= 0")
        self._linear = linear
        self._initiatives = initiatives or InitiativeService(linear=linear)
        self._labels = labels or LabelService(linear=linear)
        self._min_description_length = min_description_length

    def verify_project_creation(
        self,
        project_name: str,
        expected_issue_count: int,
        expected_labels: Mapping[str, Sequence[str]] | None = None,
        *,
        initiative_id: str,
    ) -> ProjectVerification:
        report = ProjectVerification(
            project=ProjectCheck(name=project_name),
            issues=IssueCheck(expected=expected_issue_count),
        )

        try:
            candidates = self._linear.find_projects(name_filter=project_name)
        except Exception as e:
            logger.warning(
                "Project lookup failed", extra={"project_name": project_name, "error": str(e)}
            )
            report.overall.fail(f"Project lookup failed: {project_name}: {e}")
            return report

        needle = project_name.lower()
        project = next((p for p in candidates if needle in p.name.lower()), None)
        if project is None:
            report.overall.fail(f"Project not found: {project_name}")
            return report

        return self._verify_project(
            report,
            project,
            initiative_id=initiative_id,
            expected_labels=expected_labels,
        )

    def _verify_project(
        self,
        report: ProjectVerification,
        project: ProjectSummary,
        *,
        initiative_id: str,
        expected_labels: Mapping[str, Sequence[str]] | None,
        issues: list[IssueSummary] | None = None,
    ) -> ProjectVerification:
        check = report.project
        check.id = project.id
        check.name = project.name
        check.exists = True
        check.state = project.state
        check.description_length = len(project.description)
        check.has_description = check.description_length > self._min_description_length
        check.linked_to_initiative = self._initiatives.is_project_linked_to_initiative(
            project.id, initiative_id
        )

        if not check.linked_to_initiative:
            report.overall.fail("Project not linked to initiative")
        if not check.has_description:
            report.overall.fail("Project has no description")

        if issues is None:
            try:
                issues = self._linear.list_project_issues(
                    project_id=project.id, first=ISSUE_PAGE_SIZE
                )
            except Exception as e:
                logger.warning(
                    "Issue lookup failed", extra={"project_id": project.id, "error": str(e)}
                )
                report.overall.fail(f"Issue lookup failed: {e}")
                issues = []

        report.issues.found = len(issues)
        if report.issues.found < report.issues.expected:
            report.overall.fail(
                f"Expected {report.issues.expected} issues, found {report.issues.found}"
            )

        if expected_labels is not None:
            self._check_labels(report, issues, expected_labels)

        logger.info(
            "Project verified",
            extra={
                "project_id": project.id,
                "project_name": project.name,
                "passed": report.overall.passed,
                "problems": len(report.overall.issues),
            },
        )
        return report

    def _check_labels(
        self,
        report: ProjectVerification,
        issues: list[IssueSummary],
        expected_labels: Mapping[str, Sequence[str]],
    ) -> None:
        for issue in issues:
            expected = expected_labels.get(issue.identifier)
            if expected is None:
                continue
            label_check = self._labels.verify_labels_applied(issue.id, expected)
            if label_check.missing:
                report.issues.without_labels.append(
                    f"{issue.identifier}: missing {', '.join(label_check.missing)}"
                )
            else:
                report.issues.with_labels += 1

        if report.issues.without_labels:
            report.overall.fail(f"{len(report.issues.without_labels)} issues missing labels")

    def verify_projects_for_initiative(
        self, initiative_id: str, name_filter: str
    ) -> BulkVerification:
        """Verify every matching project against its own current issue count.

        This checks internal consistency (linkage and description), not drift from an
        external expectation.
        """

        result = BulkVerification()
        try:
            projects = self._linear.find_projects(name_filter=name_filter)
        except Exception as e:
            logger.warning(
                "Project lookup failed", extra={"name_filter": name_filter, "error": str(e)}
            )
            result.summary.issues.append(f"Project lookup failed: {name_filter}: {e}")
            return result

        result.summary.total = len(projects)
        for project in projects:
            report = ProjectVerification(
                project=ProjectCheck(name=project.name),
                issues=IssueCheck(expected=0),
            )
            try:
                issues = self._linear.list_project_issues(
                    project_id=project.id, first=ISSUE_PAGE_SIZE
                )
                report.issues.expected = len(issues)
            except Exception as e:
                logger.warning(
                    "Issue lookup failed", extra={"project_id": project.id, "error": str(e)}
                )
                report.overall.fail(f"Issue lookup failed: {e}")
                issues = []

            self._verify_project(
                report,
                project,
                initiative_id=initiative_id,
                expected_labels=None,
                issues=issues,
            )
            result.projects.append(report)

            if report.overall.passed:
                result.summary.passed += 1
            else:
                result.summary.failed += 1
                result.summary.issues.append(
                    f"{project.name}: {'; '.join(report.overall.issues)}"
                )

        return result


def _mark(value: bool) -> str:
    return "yes" if value else "no"


def render_verification_report(report: ProjectVerification) -> str:
    """Render a report as plain text for terminal output."""

    project = report.project
    lines = [
        f"=== Project Verification: {project.name} ===",
        "",
        "Project:",
        f"  ID: {project.id or 'N/A'}",
        f"  Exists: {_mark(project.exists)}",
        f"  State: {project.state or 'N/A'}",
        f"  Linked to Initiative: {_mark(project.linked_to_initiative)}",
        f"  Has Description: {_mark(project.has_description)} "
        f"({project.description_length} chars)",
        "",
        "Issues:",
        f"  Expected: {report.issues.expected}",
        f"  Found: {report.issues.found}",
        f"  With Labels: {report.issues.with_labels}",
    ]
    if report.issues.without_labels:
        lines.append("  Missing Labels:")
        lines.extend(f"    - {item}" for item in report.issues.without_labels)

    lines.append("")
    lines.append(f"Overall: {'PASSED' if report.overall.passed else 'FAILED'}")
    if report.overall.issues:
        lines.append("Issues:")
        lines.extend(f"  - {item}" for item in report.overall.issues)
    return "\n".join(lines)

"""Test configuration and fixtures."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

import pytest

from linear_bookkeeper.reconciler.linear.client import (
    IssueLabels,
    IssueSummary,
    Label,
    LinearDuplicateError,
    LinearNotFoundError,
    ProjectInitiatives,
    ProjectSummary,
)
from linear_bookkeeper.reconciler.logging import configure_logging


@dataclass
class FakeProject:
    id: str
    name: str
    description: str = ""
    state: str = "planned"
    issues: list[str] = field(default_factory=list)


class FakeLinear:
    """In-memory stand-in for LinearClient with the same method surface.

    Mirrors the service's behavior: label names are unique per team
    (case-insensitively) and duplicate creates raise LinearDuplicateError.
    """

    def __init__(self) -> None:
        self.labels: dict[str, list[Label]] = {}
        self.issue_labels: dict[str, list[str]] = {}
        self.issue_identifiers: dict[str, str] = {}
        self.projects: list[FakeProject] = []
        self.initiative_projects: dict[str, list[str]] = {}
        self.create_label_calls: list[str] = []
        self.update_calls: list[tuple[str, list[str]]] = []
        self.link_calls: list[tuple[str, str]] = []
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    # Seeding helpers

    def add_label(self, team_id: str, name: str) -> str:
        label = Label(id=self._new_id("label"), name=name, color="#000000")
        self.labels.setdefault(team_id, []).append(label)
        return label.id

    def add_issue(self, issue_id: str, identifier: str, label_ids: list[str] | None = None) -> None:
        self.issue_labels[issue_id] = list(label_ids or [])
        self.issue_identifiers[issue_id] = identifier

    def add_project(
        self,
        *,
        id: str,  # noqa: A002
        name: str,
        description: str = "",
        state: str = "planned",
        issues: list[str] | None = None,
    ) -> FakeProject:
        project = FakeProject(
            id=id, name=name, description=description, state=state, issues=list(issues or [])
        )
        self.projects.append(project)
        return project

    # LinearClient surface

    def list_labels(self, *, team_id: str | None = None, first: int = 250) -> list[Label]:
        if team_id is None:
            return [label for labels in self.labels.values() for label in labels]
        return list(self.labels.get(team_id, []))

    def create_label(self, *, team_id: str, name: str, color: str) -> Label:
        self.create_label_calls.append(name)
        for label in self.labels.get(team_id, []):
            if label.name.lower() == name.lower():
                raise LinearDuplicateError("duplicate label name")
        label = Label(id=self._new_id("label"), name=name, color=color)
        self.labels.setdefault(team_id, []).append(label)
        return label

    def get_issue_labels(self, *, issue_id: str) -> IssueLabels:
        if issue_id not in self.issue_labels:
            raise LinearNotFoundError(f"Entity not found: Issue {issue_id}")
        names_by_id = {label.id: label.name for labels in self.labels.values() for label in labels}
        ids = self.issue_labels[issue_id]
        return IssueLabels(
            id=issue_id,
            identifier=self.issue_identifiers[issue_id],
            label_ids=list(ids),
            label_names=[names_by_id.get(i, "") for i in ids],
        )

    def update_issue_labels(self, *, issue_id: str, label_ids: list[str]) -> None:
        self.update_calls.append((issue_id, list(label_ids)))
        self.issue_labels[issue_id] = list(label_ids)

    def create_initiative_link(self, *, initiative_id: str, project_id: str) -> None:
        self.link_calls.append((initiative_id, project_id))
        linked = self.initiative_projects.setdefault(initiative_id, [])
        if project_id in linked:
            raise LinearDuplicateError("Initiative to project relation already exists")
        linked.append(project_id)

    def list_initiative_project_ids(self, *, initiative_id: str) -> list[str]:
        if initiative_id not in self.initiative_projects:
            raise LinearNotFoundError(f"Entity not found: Initiative {initiative_id}")
        return list(self.initiative_projects[initiative_id])

    def find_projects(self, *, name_filter: str, first: int = 50) -> list[ProjectSummary]:
        return [
            ProjectSummary(id=p.id, name=p.name, description=p.description, state=p.state)
            for p in self.projects
            if name_filter.lower() in p.name.lower()
        ][:first]

    def list_project_issues(self, *, project_id: str, first: int = 100) -> list[IssueSummary]:
        for project in self.projects:
            if project.id == project_id:
                return [
                    IssueSummary(
                        id=issue_id,
                        identifier=self.issue_identifiers.get(issue_id, issue_id),
                        title="",
                    )
                    for issue_id in project.issues
                ][:first]
        return []

    def list_project_initiatives(
        self, *, name_filter: str | None = None, first: int = 50
    ) -> list[ProjectInitiatives]:
        return [
            ProjectInitiatives(
                id=p.id,
                name=p.name,
                initiatives=sorted(
                    initiative_id
                    for initiative_id, project_ids in self.initiative_projects.items()
                    if p.id in project_ids
                ),
            )
            for p in self.projects
            if name_filter is None or name_filter.lower() in p.name.lower()
        ]

    def close(self) -> None:
        pass


@pytest.fixture
def fake_linear() -> FakeLinear:
    """Provide an empty in-memory Linear workspace."""
    return FakeLinear()


@pytest.fixture
def info_logging() -> Iterator[io.StringIO]:
    """Route JSON logs at INFO into a buffer; restore the root logger afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)
    yield stream
    root.handlers[:] = handlers
    root.setLevel(level)

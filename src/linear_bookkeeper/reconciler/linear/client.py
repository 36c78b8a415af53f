"""Linear GraphQL client wrapper.

This keeps Linear calls out of the reconciliation services and CLI code, and makes
tests easy: inject a `requests.Session` double (or mock the whole client).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.linear.app/graphql"

# Structured codes Linear reports under `errors[].extensions.code`.
_DUPLICATE_CODES = frozenset({"DUPLICATE", "CONFLICT", "ALREADY_EXISTS"})
_NOT_FOUND_CODES = frozenset({"ENTITY_NOT_FOUND", "NOT_FOUND"})

# Message fragments used when no structured code is present.
_DUPLICATE_MARKERS = ("duplicate", "already exists")
_NOT_FOUND_MARKERS = ("entity not found", "not found", "could not find")


class LinearError(RuntimeError):
    """Generic failure talking to Linear (GraphQL error, malformed payload)."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class LinearDuplicateError(LinearError):
    """The entity we tried to create already exists."""


class LinearNotFoundError(LinearError):
    """A referenced entity (label, issue, project, initiative) does not resolve."""


@dataclass(frozen=True, slots=True)
class Label:
    id: str
    name: str
    color: str


@dataclass(frozen=True, slots=True)
class IssueLabels:
    """An issue together with the labels currently applied to it."""

    id: str
    identifier: str
    label_ids: list[str]
    label_names: list[str]


@dataclass(frozen=True, slots=True)
class ProjectSummary:
    id: str
    name: str
    description: str
    state: str


@dataclass(frozen=True, slots=True)
class IssueSummary:
    id: str
    identifier: str
    title: str


@dataclass(frozen=True, slots=True)
class ProjectInitiatives:
    """A project with the names of the initiatives it is linked to."""

    id: str
    name: str
    initiatives: list[str]


def classify_graphql_errors(errors: object) -> LinearError:
    """Turn a GraphQL `errors` array into the most specific LinearError.

    Structured extension codes win; message matching is a fallback for responses
    that do not carry one.
    """

    messages: list[str] = []
    codes: list[str] = []
    if isinstance(errors, list):
        for item in errors:
            if not isinstance(item, dict):
                continue
            msg = item.get("message")
            extensions = item.get("extensions")
            if isinstance(extensions, dict):
                presentable = extensions.get("userPresentableMessage")
                if isinstance(presentable, str) and presentable.strip():
                    msg = f"{msg}: {presentable}" if isinstance(msg, str) else presentable
                code = extensions.get("code")
                if isinstance(code, str) and code.strip():
                    codes.append(code.strip().upper())
            if isinstance(msg, str):
                messages.append(msg)

    message = "; ".join(messages) if messages else "Unknown GraphQL error"
    code = codes[0] if codes else None

    if any(c in _DUPLICATE_CODES for c in codes):
        return LinearDuplicateError(message, code=code)
    if any(c in _NOT_FOUND_CODES for c in codes):
        return LinearNotFoundError(message, code=code)

    lowered = message.lower()
    if any(marker in lowered for marker in _DUPLICATE_MARKERS):
        return LinearDuplicateError(message, code=code)
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return LinearNotFoundError(message, code=code)
    return LinearError(message, code=code)


def _nodes(container: object) -> list[dict[str, Any]]:
    if not isinstance(container, dict):
        return []
    nodes = container.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [n for n in nodes if isinstance(n, dict)]


def _str(value: object) -> str:
    return value if isinstance(value, str) else ""


class LinearClient:
    """Small wrapper around the Linear GraphQL API for the operations we need."""

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("Linear API key is required")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._api_url = api_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        # Personal API keys are sent raw, not as a bearer token.
        self._session.headers.update(
            {
                "Authorization": api_key,
                "Content-Type": "application/json",
                "User-Agent": "linear-bookkeeper",
            }
        )

    def close(self) -> None:
        self._session.close()

    def _graphql(self, *, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        resp = self._session.post(
            self._api_url,
            json={"query": query, "variables": variables},
            timeout=self._timeout,
        )
        # Linear reports GraphQL errors with a 400 status and a JSON body, so look at
        # the payload before falling back to the HTTP status.
        try:
            payload = resp.json()
        except ValueError:
            resp.raise_for_status()
            raise LinearError("Linear returned a non-JSON response") from None

        if not isinstance(payload, dict):
            resp.raise_for_status()
            raise LinearError("Linear returned an unexpected response shape")

        errors = payload.get("errors")
        if errors:
            raise classify_graphql_errors(errors)

        resp.raise_for_status()
        data = payload.get("data")
        if not isinstance(data, dict):
            raise LinearError("Linear response is missing data")
        return data

    def list_labels(self, *, team_id: str | None = None, first: int = 250) -> list[Label]:
        query = """
        query Labels($filter: IssueLabelFilter, $first: Int!) {
          issueLabels(filter: $filter, first: $first) {
            nodes { id name color }
          }
        }
        """
        label_filter = {"team": {"id": {"eq": team_id}}} if team_id else None
        data = self._graphql(query=query, variables={"filter": label_filter, "first": first})

        labels: list[Label] = []
        for node in _nodes(data.get("issueLabels")):
            label_id = node.get("id")
            name = node.get("name")
            if not isinstance(label_id, str) or not isinstance(name, str):
                continue
            labels.append(Label(id=label_id, name=name, color=_str(node.get("color"))))
        logger.debug("Fetched labels", extra={"team_id": team_id, "label_count": len(labels)})
        return labels

    def create_label(self, *, team_id: str, name: str, color: str) -> Label:
        mutation = """
        mutation CreateLabel($input: IssueLabelCreateInput!) {
          issueLabelCreate(input: $input) {
            success
            issueLabel { id name color }
          }
        }
        """
        data = self._graphql(
            query=mutation,
            variables={"input": {"teamId": team_id, "name": name, "color": color}},
        )
        result = data.get("issueLabelCreate")
        label = result.get("issueLabel") if isinstance(result, dict) else None
        if not isinstance(label, dict) or not isinstance(label.get("id"), str):
            raise LinearError(f"Label creation returned no label: {name}")

        logger.info("Label created", extra={"team_id": team_id, "label": name})
        return Label(id=label["id"], name=_str(label.get("name")) or name, color=color)

    def get_issue_labels(self, *, issue_id: str) -> IssueLabels:
        query = """
        query IssueLabels($id: String!) {
          issue(id: $id) {
            id
            identifier
            labels { nodes { id name } }
          }
        }
        """
        data = self._graphql(query=query, variables={"id": issue_id})
        issue = data.get("issue")
        if not isinstance(issue, dict):
            raise LinearNotFoundError(f"Issue not found: {issue_id}")

        label_ids: list[str] = []
        label_names: list[str] = []
        for node in _nodes(issue.get("labels")):
            label_id = node.get("id")
            if isinstance(label_id, str):
                label_ids.append(label_id)
                label_names.append(_str(node.get("name")))

        return IssueLabels(
            id=_str(issue.get("id")) or issue_id,
            identifier=_str(issue.get("identifier")),
            label_ids=label_ids,
            label_names=label_names,
        )

    def update_issue_labels(self, *, issue_id: str, label_ids: list[str]) -> None:
        mutation = """
        mutation UpdateIssueLabels($id: String!, $input: IssueUpdateInput!) {
          issueUpdate(id: $id, input: $input) { success }
        }
        """
        data = self._graphql(
            query=mutation, variables={"id": issue_id, "input": {"labelIds": label_ids}}
        )
        result = data.get("issueUpdate")
        if not isinstance(result, dict) or result.get("success") is not True:
            raise LinearError(f"Issue update was not successful: {issue_id}")
        logger.debug(
            "Issue labels updated", extra={"issue_id": issue_id, "label_count": len(label_ids)}
        )

    def create_initiative_link(self, *, initiative_id: str, project_id: str) -> None:
        """Create the initiative → project edge.

        `initiativeToProjectCreate` is the only supported way to link the two; the
        project mutations do not accept initiative ids.
        """

        mutation = """
        mutation LinkProjectToInitiative($initiativeId: String!, $projectId: String!) {
          initiativeToProjectCreate(input: {initiativeId: $initiativeId, projectId: $projectId}) {
            success
            initiativeToProject { id }
          }
        }
        """
        data = self._graphql(
            query=mutation,
            variables={"initiativeId": initiative_id, "projectId": project_id},
        )
        result = data.get("initiativeToProjectCreate")
        if not isinstance(result, dict) or result.get("success") is not True:
            raise LinearError("initiativeToProjectCreate was not successful")

    def list_initiative_project_ids(self, *, initiative_id: str) -> list[str]:
        query = """
        query InitiativeProjects($initiativeId: String!) {
          initiative(id: $initiativeId) {
            id
            projects { nodes { id } }
          }
        }
        """
        data = self._graphql(query=query, variables={"initiativeId": initiative_id})
        initiative = data.get("initiative")
        if not isinstance(initiative, dict):
            raise LinearNotFoundError(f"Initiative not found: {initiative_id}")
        return [
            node["id"]
            for node in _nodes(initiative.get("projects"))
            if isinstance(node.get("id"), str)
        ]

    def find_projects(self, *, name_filter: str, first: int = 50) -> list[ProjectSummary]:
        query = """
        query Projects($name: String!, $first: Int!) {
          projects(filter: {name: {containsIgnoreCase: $name}}, first: $first) {
            nodes { id name description state }
          }
        }
        """
        data = self._graphql(query=query, variables={"name": name_filter, "first": first})

        projects: list[ProjectSummary] = []
        for node in _nodes(data.get("projects")):
            project_id = node.get("id")
            if not isinstance(project_id, str):
                continue
            projects.append(
                ProjectSummary(
                    id=project_id,
                    name=_str(node.get("name")),
                    description=_str(node.get("description")),
                    state=_str(node.get("state")),
                )
            )
        return projects

    def list_project_issues(self, *, project_id: str, first: int = 100) -> list[IssueSummary]:
        """Return the first page of a project's issues; further pages are not fetched."""

        query = """
        query ProjectIssues($projectId: ID!, $first: Int!) {
          issues(filter: {project: {id: {eq: $projectId}}}, first: $first) {
            nodes { id identifier title }
          }
        }
        """
        data = self._graphql(query=query, variables={"projectId": project_id, "first": first})
        return [
            IssueSummary(
                id=node["id"],
                identifier=_str(node.get("identifier")),
                title=_str(node.get("title")),
            )
            for node in _nodes(data.get("issues"))
            if isinstance(node.get("id"), str)
        ]

    def list_project_initiatives(
        self, *, name_filter: str | None = None, first: int = 50
    ) -> list[ProjectInitiatives]:
        query = """
        query ProjectInitiatives($filter: ProjectFilter, $first: Int!) {
          projects(filter: $filter, first: $first) {
            nodes {
              id
              name
              initiatives { nodes { id name } }
            }
          }
        }
        """
        project_filter = {"name": {"containsIgnoreCase": name_filter}} if name_filter else None
        data = self._graphql(query=query, variables={"filter": project_filter, "first": first})
        return [
            ProjectInitiatives(
                id=node["id"],
                name=_str(node.get("name")),
                initiatives=[_str(i.get("name")) for i in _nodes(node.get("initiatives"))],
            )
            for node in _nodes(data.get("projects"))
            if isinstance(node.get("id"), str)
        ]

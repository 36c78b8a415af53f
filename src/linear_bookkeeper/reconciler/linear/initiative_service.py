"""Initiative linking.

Every project is expected to hang off an initiative. Linking is treated as a set
insertion: asking for an edge that already exists is a success, not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from linear_bookkeeper.reconciler.linear.client import (
    LinearClient,
    LinearDuplicateError,
    ProjectInitiatives,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LinkResult:
    success: bool
    error: str | None = None


@dataclass(slots=True)
class BulkLinkResult:
    linked: list[str] = field(default_factory=list)
    already_linked: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class InitiativeService:
    def __init__(self, *, linear: LinearClient) -> None:
        self._linear = linear

    def link_project_to_initiative(self, project_id: str, initiative_id: str) -> LinkResult:
        try:
            self._linear.create_initiative_link(initiative_id=initiative_id, project_id=project_id)
        except LinearDuplicateError:
            logger.info(
                "Project already linked to initiative",
                extra={"project_id": project_id, "initiative_id": initiative_id},
            )
            return LinkResult(success=True)
        except Exception as e:
            logger.warning(
                "Linking project to initiative failed",
                extra={"project_id": project_id, "initiative_id": initiative_id, "error": str(e)},
            )
            return LinkResult(success=False, error=str(e))

        logger.info(
            "Project linked to initiative",
            extra={"project_id": project_id, "initiative_id": initiative_id},
        )
        return LinkResult(success=True)

    def is_project_linked_to_initiative(self, project_id: str, initiative_id: str) -> bool:
        """Return True only when the initiative provably lists the project.

        A failed lookup reports the project as unlinked. The failure is logged so a
        transient error can be told apart from a missing edge when reading the logs.
        """

        try:
            project_ids = self._linear.list_initiative_project_ids(initiative_id=initiative_id)
        except Exception as e:
            logger.warning(
                "Initiative link check failed; treating project as unlinked",
                extra={"project_id": project_id, "initiative_id": initiative_id, "error": str(e)},
            )
            return False
        return project_id in project_ids

    def link_projects_to_initiative(self, initiative_id: str, name_filter: str) -> BulkLinkResult:
        """Link every project whose name contains `name_filter` to the initiative."""

        result = BulkLinkResult()
        try:
            projects = self._linear.find_projects(name_filter=name_filter)
        except Exception as e:
            logger.warning(
                "Project lookup failed", extra={"name_filter": name_filter, "error": str(e)}
            )
            result.failed.append(f"{name_filter}: {e}")
            return result

        for project in projects:
            if self.is_project_linked_to_initiative(project.id, initiative_id):
                result.already_linked.append(project.name)
                continue

            link = self.link_project_to_initiative(project.id, initiative_id)
            if link.success:
                result.linked.append(project.name)
            else:
                result.failed.append(f"{project.name}: {link.error}")

        logger.info(
            "Bulk initiative linking finished",
            extra={
                "initiative_id": initiative_id,
                "linked": len(result.linked),
                "already_linked": len(result.already_linked),
                "failed": len(result.failed),
            },
        )
        return result

    def get_project_initiative_status(
        self, name_filter: str | None = None
    ) -> list[ProjectInitiatives]:
        return self._linear.list_project_initiatives(name_filter=name_filter)

"""Label reconciliation for Linear teams and issues.

- ensure a set of labels exists in a team (create missing, tolerate races)
- apply labels to an issue without dropping the ones already there
- verify (read-only) that an issue carries an expected set of labels

Public operations never raise for remote failures; problems are reported through
the returned result objects.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from linear_bookkeeper.linear_labels import label_color
from linear_bookkeeper.reconciler.linear.client import LinearClient, LinearDuplicateError

logger = logging.getLogger(__name__)


class LabelMap:
    """Case-insensitive mapping of label name -> label id for a single team.

    Keys are stored lowercase and every lookup is normalized the same way.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._ids: dict[str, str] = {}
        for name, label_id in (entries or {}).items():
            self.set(name, label_id)

    @staticmethod
    def normalize(name: str) -> str:
        return name.strip().lower()

    def get(self, name: str) -> str | None:
        return self._ids.get(self.normalize(name))

    def set(self, name: str, label_id: str) -> None:
        self._ids[self.normalize(name)] = label_id

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.normalize(name) in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def items(self) -> list[tuple[str, str]]:
        return list(self._ids.items())

    def __repr__(self) -> str:
        return f"LabelMap({self._ids!r})"


@dataclass(slots=True)
class LabelSyncResult:
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    label_map: LabelMap = field(default_factory=LabelMap)


@dataclass(slots=True)
class LabelApplyResult:
    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class LabelCheckResult:
    applied: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


class LabelService:
    """Idempotent label operations against a single Linear workspace."""

    def __init__(self, *, linear: LinearClient) -> None:
        self._linear = linear

    def get_label_map(self, team_id: str | None = None) -> LabelMap:
        """Fetch the labels visible to a team (or the whole workspace)."""

        label_map = LabelMap()
        for label in self._linear.list_labels(team_id=team_id):
            label_map.set(label.name, label.id)
        return label_map

    def ensure_labels_exist(self, team_id: str, names: Iterable[str]) -> LabelSyncResult:
        result = LabelSyncResult()
        try:
            result.label_map = self.get_label_map(team_id)
        except Exception as e:
            # Without a baseline we can't tell existing from missing; report everything.
            logger.warning(
                "Failed to fetch labels", extra={"team_id": team_id, "error": str(e)}
            )
            result.failed.extend(f"{name}: {e}" for name in names)
            return result

        for name in names:
            if name in result.label_map:
                result.existing.append(name)
                continue

            try:
                label = self._linear.create_label(
                    team_id=team_id, name=name, color=label_color(name)
                )
            except LinearDuplicateError:
                # Another writer created it after our fetch.
                recovered = self._recover_collision(team_id, name, result.label_map)
                if recovered:
                    result.existing.append(name)
                else:
                    result.failed.append(f"{name}: duplicate reported but label not found")
                continue
            except Exception as e:
                logger.warning(
                    "Label creation failed",
                    extra={"team_id": team_id, "label": name, "error": str(e)},
                )
                result.failed.append(f"{name}: {e}")
                continue

            result.label_map.set(name, label.id)
            result.created.append(name)

        logger.info(
            "Labels reconciled",
            extra={
                "team_id": team_id,
                "created_labels": result.created,
                "existing_labels": result.existing,
                "failed_count": len(result.failed),
            },
        )
        return result

    def _recover_collision(self, team_id: str, name: str, label_map: LabelMap) -> bool:
        try:
            refreshed = self.get_label_map(team_id)
        except Exception as e:
            logger.warning(
                "Label refresh after collision failed",
                extra={"team_id": team_id, "label": name, "error": str(e)},
            )
            return False

        label_id = refreshed.get(name)
        if label_id is None:
            return False
        label_map.set(name, label_id)
        logger.info("Recovered label after collision", extra={"team_id": team_id, "label": name})
        return True

    def apply_labels_to_issue(
        self, issue_id: str, names: Iterable[str], label_map: LabelMap
    ) -> LabelApplyResult:
        """Add labels to an issue, keeping whatever it already carries."""

        result = LabelApplyResult()
        try:
            issue = self._linear.get_issue_labels(issue_id=issue_id)
            existing_ids = list(dict.fromkeys(issue.label_ids))

            new_ids: list[str] = []
            for name in names:
                label_id = label_map.get(name)
                if label_id is None:
                    result.skipped.append(f"{name} (not found)")
                    continue
                if label_id in existing_ids or label_id in new_ids:
                    result.skipped.append(f"{name} (already applied)")
                    continue
                new_ids.append(label_id)
                result.applied.append(name)

            if not new_ids:
                return result

            self._linear.update_issue_labels(issue_id=issue_id, label_ids=existing_ids + new_ids)
        except Exception as e:
            logger.warning(
                "Applying labels failed", extra={"issue_id": issue_id, "error": str(e)}
            )
            result.error = str(e)
            return result

        logger.info(
            "Labels applied", extra={"issue_id": issue_id, "applied": result.applied}
        )
        return result

    def verify_labels_applied(self, issue_id: str, expected: Iterable[str]) -> LabelCheckResult:
        expected = list(expected)
        try:
            issue = self._linear.get_issue_labels(issue_id=issue_id)
        except Exception as e:
            logger.warning(
                "Label verification read failed", extra={"issue_id": issue_id, "error": str(e)}
            )
            return LabelCheckResult(applied=[], missing=expected)

        present = {LabelMap.normalize(name) for name in issue.label_names}
        result = LabelCheckResult()
        for name in expected:
            if LabelMap.normalize(name) in present:
                result.applied.append(name)
            else:
                result.missing.append(name)
        return result


def extract_unique_labels(issue_labels: Mapping[str, Iterable[str]]) -> list[str]:
    """Collect the distinct (lowercased) label names across an issue -> labels mapping."""

    unique: dict[str, None] = {}
    for labels in issue_labels.values():
        for label in labels:
            unique[label.lower()] = None
    return list(unique)

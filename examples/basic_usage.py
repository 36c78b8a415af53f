#!/usr/bin/env python3
"""Programmatic reconciliation example.

This demonstrates using the bookkeeper services directly:

* load settings from `.env`
* make sure a set of labels exists in a team and add them to an issue
* link a project to the default initiative
* verify the project converged

Team, issue and project are passed as arguments.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence

from linear_bookkeeper.reconciler.config import BookkeeperSettings
from linear_bookkeeper.reconciler.linear.client import LinearClient
from linear_bookkeeper.reconciler.linear.initiative_service import InitiativeService
from linear_bookkeeper.reconciler.linear.label_service import LabelService
from linear_bookkeeper.reconciler.linear.verification import (
    VerificationService,
    render_verification_report,
)
from linear_bookkeeper.reconciler.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile one project (programmatic example).")
    parser.add_argument("--team", required=True, help="Team id owning the labels")
    parser.add_argument("--issue", required=True, help="Issue id or identifier, e.g. ENG-42")
    parser.add_argument("--project-id", required=True, help="Project id to link")
    parser.add_argument("--project-name", required=True, help="Project name to verify")
    parser.add_argument("--labels", default="feature", help="Comma-separated label names")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    names = [name.strip() for name in args.labels.split(",") if name.strip()]

    settings = BookkeeperSettings()
    configure_logging(settings.log_level)
    if not settings.default_initiative_id:
        print("Set LINEAR_DEFAULT_INITIATIVE_ID to run this example")
        return 2

    linear = LinearClient(
        api_key=settings.linear_api_key,
        api_url=settings.linear_api_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
    try:
        labels = LabelService(linear=linear)
        synced = labels.ensure_labels_exist(args.team, names)
        applied = labels.apply_labels_to_issue(args.issue, names, synced.label_map)
        print(f"Labels applied to {args.issue}: {applied.applied or 'none'}")

        link = InitiativeService(linear=linear).link_project_to_initiative(
            args.project_id, settings.default_initiative_id
        )
        print(f"Initiative link: {'ok' if link.success else link.error}")

        report = VerificationService(
            linear=linear, min_description_length=settings.min_description_length
        ).verify_project_creation(
            args.project_name,
            1,
            {args.issue: names},
            initiative_id=settings.default_initiative_id,
        )
        print(render_verification_report(report))
        return 0 if report.overall.passed else 4
    finally:
        linear.close()


if __name__ == "__main__":
    raise SystemExit(main())

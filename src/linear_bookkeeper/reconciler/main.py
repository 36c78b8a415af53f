"""CLI entrypoint for the Linear bookkeeper.

Commands reconcile labels and initiative links, and verify project structure.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from enum import Enum

from pydantic import ValidationError

from linear_bookkeeper import __version__
from linear_bookkeeper.reconciler.config import BookkeeperSettings
from linear_bookkeeper.reconciler.linear.client import LinearClient
from linear_bookkeeper.reconciler.linear.initiative_service import InitiativeService
from linear_bookkeeper.reconciler.linear.label_service import LabelService
from linear_bookkeeper.reconciler.linear.verification import (
    VerificationService,
    render_verification_report,
)
from linear_bookkeeper.reconciler.logging import configure_logging

logger = logging.getLogger(__name__)

# Exit codes are designed to be CI-friendly.
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INCOMPLETE = 4


class Command(str, Enum):
    LABELS_LIST = "labels-list"
    LABELS_ENSURE = "labels-ensure"
    LABELS_APPLY = "labels-apply"
    LINK = "link"
    LINK_ALL = "link-all"
    STATUS = "status"
    VERIFY_PROJECT = "verify-project"
    VERIFY_ALL = "verify-all"


class UsageError(ValueError):
    """A required value was neither passed on the command line nor configured."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linear-bookkeeper",
        description="Reconcile and verify Linear labels, initiative links and projects",
    )
    parser.add_argument("--version", action="version", version=f"linear-bookkeeper {__version__}")

    subparsers = parser.add_subparsers(dest="group", required=True)

    labels = subparsers.add_parser("labels", help="Label reconciliation")
    label_commands = labels.add_subparsers(dest="action", required=True)

    labels_list = label_commands.add_parser("list", help="List labels for a team")
    labels_list.add_argument("--team", default=None, help="Team id (defaults to LINEAR_TEAM_ID)")
    labels_list.set_defaults(command=Command.LABELS_LIST)

    labels_ensure = label_commands.add_parser("ensure", help="Create any missing labels")
    labels_ensure.add_argument("--team", default=None, help="Team id (defaults to LINEAR_TEAM_ID)")
    labels_ensure.add_argument("names", nargs="+", help="Label names")
    labels_ensure.set_defaults(command=Command.LABELS_ENSURE)

    labels_apply = label_commands.add_parser(
        "apply", help="Ensure labels exist, then add them to an issue"
    )
    labels_apply.add_argument("--issue", required=True, help="Issue id or identifier (e.g. ENG-42)")
    labels_apply.add_argument("--team", default=None, help="Team id (defaults to LINEAR_TEAM_ID)")
    labels_apply.add_argument("names", nargs="+", help="Label names")
    labels_apply.set_defaults(command=Command.LABELS_APPLY)

    link = subparsers.add_parser("link", help="Link a project to an initiative")
    link.add_argument("--project", required=True, help="Project id")
    link.add_argument(
        "--initiative",
        default=None,
        help="Initiative id (defaults to LINEAR_DEFAULT_INITIATIVE_ID)",
    )
    link.set_defaults(command=Command.LINK)

    link_all = subparsers.add_parser(
        "link-all", help="Link every project matching a name filter to an initiative"
    )
    link_all.add_argument("--initiative", default=None, help="Initiative id")
    link_all.add_argument(
        "--filter", dest="name_filter", default=None, help="Project name filter"
    )
    link_all.set_defaults(command=Command.LINK_ALL)

    status = subparsers.add_parser("status", help="Show projects and their initiatives")
    status.add_argument("--filter", dest="name_filter", default=None, help="Project name filter")
    status.set_defaults(command=Command.STATUS)

    verify = subparsers.add_parser("verify", help="Verify project structure")
    verify_commands = verify.add_subparsers(dest="action", required=True)

    verify_project = verify_commands.add_parser("project", help="Verify a single project")
    verify_project.add_argument("project_name", help="Project name (case-insensitive substring)")
    verify_project.add_argument(
        "--expected-issues", type=int, default=0, help="Minimum number of issues expected"
    )
    verify_project.add_argument("--initiative", default=None, help="Initiative id")
    verify_project.add_argument("--json", action="store_true", help="Emit the report as JSON")
    verify_project.set_defaults(command=Command.VERIFY_PROJECT)

    verify_all = verify_commands.add_parser("all", help="Verify every matching project")
    verify_all.add_argument("--initiative", default=None, help="Initiative id")
    verify_all.add_argument(
        "--filter", dest="name_filter", default=None, help="Project name filter"
    )
    verify_all.add_argument("--json", action="store_true", help="Emit the reports as JSON")
    verify_all.set_defaults(command=Command.VERIFY_ALL)

    return parser


def _require(value: str | None, *, what: str, env: str) -> str:
    if value is None or not value.strip():
        raise UsageError(f"{what} is required (pass it explicitly or set {env})")
    return value


def _team(args: argparse.Namespace, settings: BookkeeperSettings) -> str:
    return _require(args.team or settings.team_id, what="Team id", env="LINEAR_TEAM_ID")


def _initiative(args: argparse.Namespace, settings: BookkeeperSettings) -> str:
    return _require(
        args.initiative or settings.default_initiative_id,
        what="Initiative id",
        env="LINEAR_DEFAULT_INITIATIVE_ID",
    )


def _name_filter(args: argparse.Namespace, settings: BookkeeperSettings) -> str:
    return _require(
        args.name_filter or settings.project_filter,
        what="Project name filter",
        env="LINEAR_PROJECT_FILTER",
    )


def _print_list(title: str, items: list[str]) -> None:
    print(f"{title}: {', '.join(items) or 'none'}")


def _labels_list(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    team_id = args.team or settings.team_id
    label_map = LabelService(linear=linear).get_label_map(team_id)
    for name, label_id in sorted(label_map.items()):
        print(f"  {name}: {label_id}")
    print(f"Total: {len(label_map)} labels")
    return EXIT_OK


def _labels_ensure(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    result = LabelService(linear=linear).ensure_labels_exist(_team(args, settings), args.names)
    _print_list("Created", result.created)
    _print_list("Existing", result.existing)
    _print_list("Failed", result.failed)
    return EXIT_INCOMPLETE if result.failed else EXIT_OK


def _labels_apply(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    service = LabelService(linear=linear)
    synced = service.ensure_labels_exist(_team(args, settings), args.names)
    result = service.apply_labels_to_issue(args.issue, args.names, synced.label_map)
    _print_list("Applied", result.applied)
    _print_list("Skipped", result.skipped)
    if result.error:
        print(f"Error: {result.error}", file=sys.stderr)
        return EXIT_INCOMPLETE
    return EXIT_INCOMPLETE if synced.failed else EXIT_OK


def _link(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    initiative_id = _initiative(args, settings)
    result = InitiativeService(linear=linear).link_project_to_initiative(
        args.project, initiative_id
    )
    if result.success:
        print(f"Project {args.project} linked to initiative {initiative_id}")
        return EXIT_OK
    print(f"Linking failed: {result.error}", file=sys.stderr)
    return EXIT_INCOMPLETE


def _link_all(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    result = InitiativeService(linear=linear).link_projects_to_initiative(
        _initiative(args, settings), _name_filter(args, settings)
    )
    _print_list("Already linked", result.already_linked)
    _print_list("Newly linked", result.linked)
    _print_list("Failed", result.failed)
    print(
        f"Summary: {len(result.linked)} linked, {len(result.already_linked)} already linked, "
        f"{len(result.failed)} failed"
    )
    return EXIT_INCOMPLETE if result.failed else EXIT_OK


def _status(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    projects = InitiativeService(linear=linear).get_project_initiative_status(
        args.name_filter or settings.project_filter or None
    )
    for project in projects:
        print(f"  {project.name}: {', '.join(project.initiatives) or '(no initiative)'}")
    return EXIT_OK


def _verification_service(
    settings: BookkeeperSettings, linear: LinearClient
) -> VerificationService:
    return VerificationService(
        linear=linear, min_description_length=settings.min_description_length
    )


def _verify_project(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    report = _verification_service(settings, linear).verify_project_creation(
        args.project_name,
        args.expected_issues,
        initiative_id=_initiative(args, settings),
    )
    print(report.model_dump_json(indent=2) if args.json else render_verification_report(report))
    return EXIT_OK if report.overall.passed else EXIT_INCOMPLETE


def _verify_all(
    args: argparse.Namespace, settings: BookkeeperSettings, linear: LinearClient
) -> int:
    result = _verification_service(settings, linear).verify_projects_for_initiative(
        _initiative(args, settings), _name_filter(args, settings)
    )
    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        for report in result.projects:
            print(render_verification_report(report))
            print()
        summary = result.summary
        print(f"Total: {summary.total}  Passed: {summary.passed}  Failed: {summary.failed}")
        for item in summary.issues:
            print(f"  - {item}")
    return EXIT_INCOMPLETE if result.summary.issues else EXIT_OK


Handler = Callable[[argparse.Namespace, BookkeeperSettings, LinearClient], int]

HANDLERS: dict[Command, Handler] = {
    Command.LABELS_LIST: _labels_list,
    Command.LABELS_ENSURE: _labels_ensure,
    Command.LABELS_APPLY: _labels_apply,
    Command.LINK: _link,
    Command.LINK_ALL: _link_all,
    Command.STATUS: _status,
    Command.VERIFY_PROJECT: _verify_project,
    Command.VERIFY_ALL: _verify_all,
}


def main(argv: list[str] | None = None, *, linear: LinearClient | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = BookkeeperSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings.log_level)

    handler = HANDLERS.get(args.command)
    if handler is None:
        logger.error("Unknown command", extra={"command": str(args.command)})
        return EXIT_USAGE

    client = linear or LinearClient(
        api_key=settings.linear_api_key,
        api_url=settings.linear_api_url,
        timeout_seconds=settings.request_timeout_seconds,
    )
    try:
        return handler(args, settings, client)
    except UsageError as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE
    except Exception:
        logger.exception("Command failed", extra={"command": args.command.value})
        return EXIT_ERROR
    finally:
        if linear is None:
            client.close()


if __name__ == "__main__":
    raise SystemExit(main())

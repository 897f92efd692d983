"""
Command-line interface for the GitLab to Azure DevOps migration tool.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from collections.abc import Sequence

from .ado_client import AdoClient
from .config import ClientConfig
from .gitlab_client import GitLabClient
from .migrator import GitLabToAdoMigrator, MigrationReport
from .transport import RetryingTransport
from .utils import setup_logging


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Provision an Azure DevOps project for a GitLab project")

    _ = parser.add_argument("gitlab_project", help="GitLab project path (namespace/project)")
    _ = parser.add_argument("ado_project", help="Azure DevOps project name")

    _ = parser.add_argument("--repo-name", help="Azure Repos repository name (default: GitLab project path)")
    _ = parser.add_argument("--push-git", action="store_true", help="Mirror branches and tags into the repository")
    _ = parser.add_argument(
        "--ado-pass-token",
        help="Path for the Azure DevOps PAT in pass utility (default: env ADO_PAT, then ado/cli/pat)",
    )
    _ = parser.add_argument(
        "--gitlab-pass-token",
        help="Path for GitLab token in pass utility (default: env GITLAB_TOKEN, then gitlab/cli/ro_token)",
    )
    _ = parser.add_argument(
        "--insecure", action="store_true", help="Do not verify TLS certificates (self-signed on-premise servers)"
    )
    _ = parser.add_argument("--log-calls", action="store_true", help="Log every REST call with status and duration")
    _ = parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return parser.parse_args(argv)


def _print_report(report: MigrationReport) -> None:
    status = "SUCCEEDED" if report.success else "FAILED"
    print(f"\nMigration {report.gitlab_project} -> {report.ado_project}: {status}")  # noqa: T201
    print(f"  Project:    {'created' if report.project_created else 'already existed'}")  # noqa: T201
    repo_state = "created" if report.repository_created else "already existed"
    print(f"  Repository: {report.repository} ({repo_state})")  # noqa: T201
    if report.repository_url:
        print(f"  Clone URL:  {report.repository_url}")  # noqa: T201
    for key, value in report.statistics.items():
        print(f"  {key}: {value}")  # noqa: T201
    for note in report.notes:
        print(f"  Note: {note}")  # noqa: T201
    for error in report.errors:
        print(f"  Error: {error}")  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)

    verbose: bool = getattr(args, "verbose", False)
    setup_logging(verbose=verbose)

    try:
        config = ClientConfig.from_env(ado_pass_path=args.ado_pass_token, gitlab_pass_path=args.gitlab_pass_token)
        if args.insecure:
            config = dataclasses.replace(config, verify_certificates=False)
        if args.log_calls:
            config = dataclasses.replace(config, log_calls=True)

        transport = RetryingTransport(config)
        try:
            migrator = GitLabToAdoMigrator(
                GitLabClient(config, transport=transport),
                AdoClient(config, transport=transport),
                args.gitlab_project,
                args.ado_project,
                repository_name=args.repo_name,
                push_git=args.push_git,
            )
            report = migrator.migrate()
        finally:
            transport.close()
    except Exception:
        logger = logging.getLogger(__name__)
        logger.exception("Migration failed")
        sys.exit(1)

    _print_report(report)
    sys.exit(0 if report.success else 1)

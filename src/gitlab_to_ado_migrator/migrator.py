"""
Migration of one GitLab project into an Azure DevOps project.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from . import git_mirror
from . import provisioning
from .exceptions import ApiError, MigrationError

if TYPE_CHECKING:
    from .ado_client import AdoClient
    from .gitlab_client import GitLabClient

logger: logging.Logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    gitlab_project: str
    ado_project: str
    repository: str
    success: bool = False
    project_created: bool = False
    repository_created: bool = False
    repository_url: str | None = None
    statistics: dict[str, int] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class GitLabToAdoMigrator:
    """Provisions the Azure DevOps side for a GitLab project and optionally mirrors its Git history."""

    def __init__(
        self,
        gitlab: GitLabClient,
        ado: AdoClient,
        gitlab_project_path: str,
        ado_project_name: str,
        *,
        repository_name: str | None = None,
        push_git: bool = False,
    ) -> None:
        self.gitlab = gitlab
        self.ado = ado
        self.gitlab_project_path = gitlab_project_path.strip("/")
        self.ado_project_name = ado_project_name
        self.repository_name = repository_name
        self.push_git = push_git

        logger.info(f"Initialized migrator for {self.gitlab_project_path} -> {ado_project_name}")

    def validate_api_access(self) -> dict[str, Any]:
        """Read the GitLab project and the ADO project list; return the GitLab project."""
        try:
            gitlab_project = self.gitlab.get_project(self.gitlab_project_path)
            logger.info("GitLab API access validated")
        except ApiError as e:
            msg = f"GitLab API access failed: {e}"
            raise MigrationError(msg) from e

        try:
            self.ado.get_projects()
            logger.info("Azure DevOps API access validated")
        except ApiError as e:
            msg = f"Azure DevOps API access failed: {e}"
            raise MigrationError(msg) from e
        return gitlab_project

    def migrate(self) -> MigrationReport:
        """Run every step; a failing step stops the run and is recorded in the report."""
        report = MigrationReport(
            gitlab_project=self.gitlab_project_path,
            ado_project=self.ado_project_name,
            repository=self.repository_name or self.gitlab_project_path.rsplit("/", 1)[-1],
        )
        try:
            gitlab_project = self.validate_api_access()
            if self.repository_name is None:
                report.repository = str(gitlab_project.get("path") or report.repository)

            description = gitlab_project.get("description") or f"Migrated from {gitlab_project.get('web_url', '')}"
            project_result = provisioning.ensure_project(self.ado, self.ado_project_name, description=description)
            report.project_created = project_result.created
            report.notes.extend(project_result.notes)

            repo_result = provisioning.ensure_repository(self.ado, project_result.resource, report.repository)
            report.repository_created = repo_result.created
            report.repository_url = repo_result.resource.get("remoteUrl")

            report.statistics["gitlab_branches"] = len(self.gitlab.list_branches(self.gitlab_project_path))

            if self.push_git:
                self._push_git(gitlab_project, report)

            report.success = True
        except MigrationError as e:
            logger.exception("Migration step failed")
            report.errors.append(str(e))
        return report

    def _push_git(self, gitlab_project: dict[str, Any], report: MigrationReport) -> None:
        source_url = gitlab_project.get("http_url_to_repo")
        if not source_url or not report.repository_url:
            msg = "Cannot mirror Git history: clone URL missing on the GitLab or Azure DevOps side"
            raise MigrationError(msg)
        result = git_mirror.mirror_repository(
            source_url,
            report.repository_url,
            self.gitlab.config.gitlab_token,
            self.ado.config.ado_token,
        )
        report.statistics["pushed_branches"] = result.branches
        report.statistics["pushed_tags"] = result.tags

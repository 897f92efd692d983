"""Tests for the migration workflow."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from gitlab_to_ado_migrator.ado_client import AdoClient
from gitlab_to_ado_migrator.errors import NormalizedError, Side
from gitlab_to_ado_migrator.exceptions import ApiError, MigrationError
from gitlab_to_ado_migrator.git_mirror import MirrorResult
from gitlab_to_ado_migrator.gitlab_client import GitLabClient
from gitlab_to_ado_migrator.migrator import GitLabToAdoMigrator
from gitlab_to_ado_migrator.models import EnsureResult

GITLAB_PROJECT = {
    "id": 7,
    "path": "repo",
    "description": "",
    "web_url": "https://gitlab.example.com/ns/repo",
    "http_url_to_repo": "https://gitlab.example.com/ns/repo.git",
}
ADO_PROJECT = {"id": "p-1", "name": "Target"}
REPOSITORY = {"id": "r-1", "name": "repo", "remoteUrl": "https://ado.example.com/Target/_git/repo"}


@pytest.fixture
def gitlab(config) -> Mock:
    client = Mock(spec=GitLabClient)
    client.config = config
    client.get_project.return_value = GITLAB_PROJECT
    client.list_branches.return_value = [{"name": "main"}, {"name": "dev"}]
    return client


@pytest.fixture
def ado(config) -> Mock:
    client = Mock(spec=AdoClient)
    client.config = config
    client.get_projects.return_value = [ADO_PROJECT]
    return client


@pytest.fixture
def provisioning():
    with patch("gitlab_to_ado_migrator.migrator.provisioning") as mock_provisioning:
        mock_provisioning.ensure_project.return_value = EnsureResult(resource=ADO_PROJECT, created=True)
        mock_provisioning.ensure_repository.return_value = EnsureResult(resource=REPOSITORY, created=True)
        yield mock_provisioning


@pytest.mark.unit
class TestValidateApiAccess:
    def test_returns_gitlab_project(self, gitlab: Mock, ado: Mock) -> None:
        migrator = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target")
        assert migrator.validate_api_access() == GITLAB_PROJECT
        gitlab.get_project.assert_called_once_with("ns/repo")

    def test_gitlab_failure(self, gitlab: Mock, ado: Mock) -> None:
        gitlab.get_project.side_effect = ApiError(
            NormalizedError(Side.GITLAB, "https://gl/x", 404, "404 Project Not Found"), method="GET", attempts=1
        )
        migrator = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target")

        with pytest.raises(MigrationError, match="GitLab API access failed"):
            migrator.validate_api_access()
        ado.get_projects.assert_not_called()

    def test_ado_failure(self, gitlab: Mock, ado: Mock) -> None:
        ado.get_projects.side_effect = ApiError(
            NormalizedError(Side.ADO, "https://ado/x", 401, "unauthorized"), method="GET", attempts=1
        )
        migrator = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target")

        with pytest.raises(MigrationError, match="Azure DevOps API access failed"):
            migrator.validate_api_access()


@pytest.mark.unit
class TestMigrate:
    def test_provisions_project_and_repository(self, gitlab: Mock, ado: Mock, provisioning: Mock) -> None:
        report = GitLabToAdoMigrator(gitlab, ado, "/ns/repo/", "Target").migrate()

        assert report.success
        assert report.errors == []
        assert report.gitlab_project == "ns/repo"
        assert report.repository == "repo"
        assert report.project_created
        assert report.repository_created
        assert report.repository_url == REPOSITORY["remoteUrl"]
        assert report.statistics == {"gitlab_branches": 2}
        provisioning.ensure_project.assert_called_once_with(
            ado, "Target", description="Migrated from https://gitlab.example.com/ns/repo"
        )
        provisioning.ensure_repository.assert_called_once_with(ado, ADO_PROJECT, "repo")

    def test_explicit_repository_name(self, gitlab: Mock, ado: Mock, provisioning: Mock) -> None:
        report = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target", repository_name="renamed").migrate()
        assert report.repository == "renamed"
        provisioning.ensure_repository.assert_called_once_with(ado, ADO_PROJECT, "renamed")

    def test_project_notes_are_reported(self, gitlab: Mock, ado: Mock, provisioning: Mock) -> None:
        provisioning.ensure_project.return_value = EnsureResult(
            resource=ADO_PROJECT, created=True, notes=["operation record disappeared"]
        )
        report = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target").migrate()
        assert report.notes == ["operation record disappeared"]

    def test_failure_is_recorded_in_report(self, gitlab: Mock, ado: Mock, provisioning: Mock) -> None:
        provisioning.ensure_repository.side_effect = ApiError(
            NormalizedError(Side.ADO, "https://ado/x", 403, "TF401027: permission denied"), method="POST", attempts=1
        )

        report = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target").migrate()

        assert not report.success
        assert len(report.errors) == 1
        assert "TF401027" in report.errors[0]
        assert report.project_created

    @patch("gitlab_to_ado_migrator.migrator.git_mirror.mirror_repository")
    def test_push_git(self, mock_mirror: Mock, gitlab: Mock, ado: Mock, provisioning: Mock, config) -> None:
        mock_mirror.return_value = MirrorResult(branches=2, tags=1)

        report = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target", push_git=True).migrate()

        assert report.success
        assert report.statistics == {"gitlab_branches": 2, "pushed_branches": 2, "pushed_tags": 1}
        mock_mirror.assert_called_once_with(
            GITLAB_PROJECT["http_url_to_repo"], REPOSITORY["remoteUrl"], config.gitlab_token, config.ado_token
        )

    def test_push_git_without_clone_url(self, gitlab: Mock, ado: Mock, provisioning: Mock) -> None:
        provisioning.ensure_repository.return_value = EnsureResult(resource={"id": "r-1"}, created=False)

        report = GitLabToAdoMigrator(gitlab, ado, "ns/repo", "Target", push_git=True).migrate()

        assert not report.success
        assert "clone URL missing" in report.errors[0]

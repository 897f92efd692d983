"""Tests for authentication headers and URI construction."""

from __future__ import annotations

import base64

import pytest

from gitlab_to_ado_migrator.auth import (
    build_ado_headers,
    build_ado_uri,
    build_auth_headers,
    build_gitlab_headers,
    build_gitlab_uri,
)
from gitlab_to_ado_migrator.errors import Side

ORG = "https://dev.azure.com/contoso"


@pytest.mark.unit
class TestHeaders:
    def test_ado_basic_auth_has_empty_username(self) -> None:
        headers = build_ado_headers("my-pat")

        scheme, encoded = headers["Authorization"].split(" ", 1)
        assert scheme == "Basic"
        assert base64.b64decode(encoded).decode() == ":my-pat"
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"

    def test_gitlab_private_token(self) -> None:
        assert build_gitlab_headers("glpat-x") == {"PRIVATE-TOKEN": "glpat-x"}

    def test_dispatch_by_side(self) -> None:
        assert "Authorization" in build_auth_headers(Side.ADO, "t")
        assert build_auth_headers(Side.GITLAB, "t") == {"PRIVATE-TOKEN": "t"}


@pytest.mark.unit
class TestBuildAdoUri:
    """Tests for build_ado_uri()."""

    def test_appends_api_version(self) -> None:
        assert build_ado_uri(ORG, "_apis/projects", "7.1") == f"{ORG}/_apis/projects?api-version=7.1"

    def test_appends_to_existing_query(self) -> None:
        uri = build_ado_uri(ORG, "_apis/projects?$top=1000", "7.1")
        assert uri == f"{ORG}/_apis/projects?$top=1000&api-version=7.1"

    def test_existing_api_version_wins(self) -> None:
        uri = build_ado_uri(ORG, "_apis/graph/groups?api-version=7.1-preview.1", "7.1")
        assert uri == f"{ORG}/_apis/graph/groups?api-version=7.1-preview.1"
        assert uri.count("api-version") == 1

    def test_existing_api_version_is_matched_case_insensitively(self) -> None:
        uri = build_ado_uri(ORG, "_apis/projects?API-Version=6.0", "7.1")
        assert uri == f"{ORG}/_apis/projects?API-Version=6.0"

    def test_slashes_are_normalized(self) -> None:
        assert build_ado_uri(f"{ORG}/", "/_apis/projects", "7.1") == f"{ORG}/_apis/projects?api-version=7.1"

    def test_absolute_url_is_not_rebased(self) -> None:
        uri = build_ado_uri(ORG, "https://vssps.dev.azure.com/contoso/_apis/graph/users", "7.1-preview.1")
        assert uri == "https://vssps.dev.azure.com/contoso/_apis/graph/users?api-version=7.1-preview.1"

    def test_api_version_like_parameter_is_not_confused(self) -> None:
        uri = build_ado_uri(ORG, "_apis/x?my-api-version=1", "7.1")
        assert uri.endswith("&api-version=7.1")


@pytest.mark.unit
class TestBuildGitlabUri:
    def test_prefixes_api_v4(self) -> None:
        assert build_gitlab_uri("https://gitlab.com", "projects/1") == "https://gitlab.com/api/v4/projects/1"

    def test_path_already_under_api(self) -> None:
        assert build_gitlab_uri("https://gitlab.com", "/api/v4/version") == "https://gitlab.com/api/v4/version"

    def test_absolute_url(self) -> None:
        url = "https://gitlab.com/api/v4/projects?page=2"
        assert build_gitlab_uri("https://other.example", url) == url

"""Authentication headers and versioned URI construction for both upstreams."""

from __future__ import annotations

import base64
from typing import Final
from urllib.parse import parse_qsl, urlsplit

from .errors import Side

JSON_CONTENT_TYPE: Final[str] = "application/json"
GITLAB_API_PREFIX: Final[str] = "/api/v4"


def build_ado_headers(token: str) -> dict[str, str]:
    """Basic auth with an empty username and the PAT as password."""
    encoded = base64.b64encode(f":{token}".encode()).decode("ascii")
    return {
        "Authorization": f"Basic {encoded}",
        "Content-Type": JSON_CONTENT_TYPE,
        "Accept": JSON_CONTENT_TYPE,
    }


def build_gitlab_headers(token: str) -> dict[str, str]:
    return {"PRIVATE-TOKEN": token}


def build_auth_headers(side: Side, token: str) -> dict[str, str]:
    if side is Side.ADO:
        return build_ado_headers(token)
    return build_gitlab_headers(token)


def _is_absolute(path: str) -> bool:
    return path.startswith(("http://", "https://"))


def _join(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_ado_uri(base_url: str, path: str, api_version: str) -> str:
    """Join base URL and path and qualify the result with ``api-version``.

    An ``api-version`` the caller already embedded in the path wins; the
    parameter is then left alone. Absolute URLs (continuation links) are not
    re-based.

    Args:
        base_url: Organization or collection URL (e.g. https://dev.azure.com/org)
        path: Request path, e.g. ``_apis/projects`` or ``MyProject/_apis/git/repositories?$top=10``
        api_version: Version to append, e.g. ``7.1`` or ``7.1-preview.1``
    """
    uri = path if _is_absolute(path) else _join(base_url, path)
    query = urlsplit(uri).query
    if any(name.lower() == "api-version" for name, _ in parse_qsl(query, keep_blank_values=True)):
        return uri
    separator = "&" if "?" in uri else "?"
    return f"{uri}{separator}api-version={api_version}"


def build_gitlab_uri(base_url: str, path: str) -> str:
    """GitLab versions by path: prefix ``/api/v4`` unless the path is already under ``/api/``."""
    if _is_absolute(path):
        return path
    normalized = "/" + path.lstrip("/")
    if not normalized.startswith("/api/"):
        normalized = f"{GITLAB_API_PREFIX}{normalized}"
    return _join(base_url, normalized)

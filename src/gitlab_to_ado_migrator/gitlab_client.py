"""Read-only GitLab REST client (source side of the migration)."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import quote, urlencode

from .auth import build_gitlab_headers, build_gitlab_uri
from .errors import Side
from .exceptions import ApiError
from .models import Found, LookupResult, NotFound, decode_envelope, items_of, resource_of
from .transport import RetryingTransport

if TYPE_CHECKING:
    from .config import ClientConfig

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE: Final[int] = 100


def encode_project_path(project_path: str) -> str:
    """``group/sub/project`` -> ``group%2Fsub%2Fproject`` as GitLab expects in /projects/:id."""
    return quote(project_path.strip("/"), safe="")


class GitLabClient:
    """GET-only access to a GitLab instance."""

    config: ClientConfig
    _transport: RetryingTransport
    _headers: dict[str, str]

    def __init__(self, config: ClientConfig, *, transport: RetryingTransport | None = None) -> None:
        self.config = config
        self._transport = transport or RetryingTransport(config)
        if config.gitlab_token:
            self._headers = build_gitlab_headers(config.gitlab_token)
        else:
            logger.warning("No GitLab token configured; only public projects will be readable")
            self._headers = {}

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        uri = build_gitlab_uri(self.config.gitlab_base_url, path)
        if params:
            separator = "&" if "?" in uri else "?"
            uri = f"{uri}{separator}{urlencode(params)}"
        return self._transport.execute("GET", uri, self._headers, side=Side.GITLAB)

    def try_get(self, path: str, params: Mapping[str, Any] | None = None) -> LookupResult:
        try:
            return Found(self.get(path, params))
        except ApiError as e:
            if e.status == 404:
                return NotFound(endpoint=e.error.endpoint)
            raise

    def get_project(self, project_path: str) -> dict[str, Any]:
        """Fetch a project by its full path (namespace/project)."""
        payload = self.get(f"projects/{encode_project_path(project_path)}")
        return resource_of(decode_envelope(payload), context=f"GitLab project {project_path}")

    def paginate(
        self, path: str, *, per_page: int = DEFAULT_PER_PAGE, params: Mapping[str, Any] | None = None
    ) -> Iterator[Any]:
        """Yield items of a list endpoint page by page until a short page is returned."""
        page = 1
        while True:
            query = {**(params or {}), "page": page, "per_page": per_page}
            items = items_of(decode_envelope(self.get(path, query)), context=path)
            yield from items
            if len(items) < per_page:
                return
            page += 1

    def list_branches(self, project_path: str) -> list[dict[str, Any]]:
        return list(self.paginate(f"projects/{encode_project_path(project_path)}/repository/branches"))

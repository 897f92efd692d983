"""Azure DevOps REST client: one instance per run, passed to every provisioning step."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Final

from .auth import build_ado_headers, build_ado_uri
from .cache import ResourceCache
from .errors import Side
from .exceptions import ApiError
from .masking import mask
from .models import Found, LookupResult, NotFound, decode_envelope, items_of
from .operations import DEFAULT_MAX_POLLS, DEFAULT_POLL_INTERVAL, OperationPoller, OperationState
from .transport import RetryingTransport

if TYPE_CHECKING:
    from .config import ClientConfig

logger: logging.Logger = logging.getLogger(__name__)

PROJECTS_CACHE_KEY: Final[str] = "ado:projects"
PROJECTS_TTL_MINUTES: Final[int] = 15
PROJECTS_PATH: Final[str] = "_apis/projects?$top=1000"


class AdoClient:
    """Authenticated access to one Azure DevOps organization or collection."""

    config: ClientConfig
    _transport: RetryingTransport
    _cache: ResourceCache
    _headers: dict[str, str]

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: RetryingTransport | None = None,
        cache: ResourceCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self._transport = transport or RetryingTransport(config, sleep=sleep)
        self._cache = cache or ResourceCache()
        self._sleep = sleep
        self._headers = build_ado_headers(config.ado_token)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        api_version: str | None = None,
        content_type: str | None = None,
        max_attempts: int | None = None,
    ) -> Any:
        """Send a request relative to the organization URL.

        Args:
            method: HTTP verb
            path: ``_apis/...`` or ``{project}/_apis/...``, optionally with a query string
            body: JSON body for POST/PUT/PATCH
            api_version: Overrides the configured version (e.g. ``7.1-preview.1``)
            content_type: Overrides ``application/json`` (e.g. ``application/json-patch+json``)
            max_attempts: Overrides the configured retry budget
        """
        uri = build_ado_uri(self.config.ado_base_url, path, api_version or self.config.api_version)
        headers = self._headers if content_type is None else {**self._headers, "Content-Type": content_type}
        return self._transport.execute(method, uri, headers, body, side=Side.ADO, max_attempts=max_attempts)

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, body, **kwargs)

    def put(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PUT", path, body, **kwargs)

    def patch(self, path: str, body: Any = None, **kwargs: Any) -> Any:
        return self.request("PATCH", path, body, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Any:
        return self.request("DELETE", path, **kwargs)

    def try_get(self, path: str, **kwargs: Any) -> LookupResult:
        """GET that reports a 404 as NotFound instead of raising."""
        try:
            return Found(self.get(path, **kwargs))
        except ApiError as e:
            if e.status == 404:
                return NotFound(endpoint=e.error.endpoint)
            raise

    def list_items(self, path: str, **kwargs: Any) -> list[Any]:
        """GET a collection endpoint and return its items."""
        return items_of(decode_envelope(self.get(path, **kwargs)), context=path)

    def get_projects(self, *, refresh: bool = False) -> list[dict[str, Any]]:
        """All projects, cached for fifteen minutes."""
        return self._cache.get(PROJECTS_CACHE_KEY, PROJECTS_TTL_MINUTES, refresh, self._fetch_projects)

    def _fetch_projects(self) -> list[dict[str, Any]]:
        projects = self.list_items(PROJECTS_PATH)
        logger.debug(f"Fetched {len(projects)} Azure DevOps projects")
        return projects

    def find_project(self, name: str, *, refresh: bool = False) -> LookupResult:
        """Look a project up by name (case-insensitive, as Azure DevOps compares names)."""
        wanted = name.casefold()
        for project in self.get_projects(refresh=refresh):
            if str(project.get("name", "")).casefold() == wanted:
                return Found(project)
        return NotFound(endpoint=mask(f"{PROJECTS_PATH} (name={name})", enabled=self.config.mask_secrets))

    def get_operation(self, operation_id: str) -> Any:
        return self.get(f"_apis/operations/{operation_id}")

    def wait_for_operation(
        self,
        operation_id: str,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
    ) -> OperationState:
        poller = OperationPoller(
            self.get_operation,
            poll_interval=poll_interval,
            max_polls=max_polls,
            sleep=self._sleep,
        )
        return poller.await_completion(operation_id)

    def invalidate_projects(self) -> None:
        self._cache.invalidate(PROJECTS_CACHE_KEY)

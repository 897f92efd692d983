"""Session configuration shared by every REST call.

The configuration is created once at process start and never mutated; every
client and transport receives it explicitly.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from . import utils
from .exceptions import ConfigurationError

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_API_VERSION: Final[str] = "7.1"
DEFAULT_GITLAB_URL: Final[str] = "https://gitlab.com"

_DEFAULT_ADO_PASS_PATH: Final[str] = "ado/cli/pat"  # noqa: S105
_DEFAULT_GITLAB_PASS_PATH: Final[str] = "gitlab/cli/ro_token"  # noqa: S105

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class ClientConfig:
    """Immutable connection, retry and logging settings."""

    ado_base_url: str
    ado_token: str = field(repr=False)
    gitlab_base_url: str = DEFAULT_GITLAB_URL
    gitlab_token: str | None = field(default=None, repr=False)
    api_version: str = DEFAULT_API_VERSION
    verify_certificates: bool = True
    max_attempts: int = 3
    initial_delay: float = 5.0
    mask_secrets: bool = True
    log_calls: bool = False
    request_timeout: float = 60.0

    def __post_init__(self) -> None:
        for name in ("ado_base_url", "gitlab_base_url"):
            value: str = getattr(self, name)
            if not value.startswith(("http://", "https://")):
                msg = f"{name} must be an http(s) URL, got {value!r}"
                raise ConfigurationError(msg)
            object.__setattr__(self, name, value.rstrip("/"))
        if not self.ado_token:
            msg = "An Azure DevOps personal access token is required"
            raise ConfigurationError(msg)
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ConfigurationError(msg)
        if self.initial_delay < 0:
            msg = f"initial_delay must not be negative, got {self.initial_delay}"
            raise ConfigurationError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigurationError(msg)

    @classmethod
    def from_env(
        cls,
        *,
        ado_pass_path: str | None = None,
        gitlab_pass_path: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ClientConfig:
        """Build the configuration from environment variables and the pass store."""
        env = os.environ if environ is None else environ

        ado_url = env.get("ADO_ORG_URL")
        if not ado_url:
            msg = "ADO_ORG_URL must be set to the Azure DevOps organization or collection URL"
            raise ConfigurationError(msg)

        ado_token = resolve_token(ado_pass_path, env.get("ADO_PAT"), _DEFAULT_ADO_PASS_PATH, "Azure DevOps")
        if not ado_token:
            msg = "No Azure DevOps token found: set ADO_PAT or provide a pass entry"
            raise ConfigurationError(msg)

        gitlab_token = resolve_token(gitlab_pass_path, env.get("GITLAB_TOKEN"), _DEFAULT_GITLAB_PASS_PATH, "GitLab")

        return cls(
            ado_base_url=ado_url,
            ado_token=ado_token,
            gitlab_base_url=env.get("GITLAB_URL") or DEFAULT_GITLAB_URL,
            gitlab_token=gitlab_token,
            api_version=env.get("ADO_API_VERSION") or DEFAULT_API_VERSION,
            verify_certificates=not _env_bool(env, "ADO_INSECURE_TLS", default=False),
            max_attempts=_env_int(env, "MIGRATION_MAX_ATTEMPTS", 3),
            initial_delay=_env_float(env, "MIGRATION_RETRY_DELAY", 5.0),
            mask_secrets=_env_bool(env, "MIGRATION_MASK_SECRETS", default=True),
            log_calls=_env_bool(env, "MIGRATION_LOG_CALLS", default=False),
        )


def resolve_token(pass_path: str | None, env_value: str | None, default_pass_path: str, label: str) -> str | None:
    """Get a token from an explicit pass path, then the environment, then the default pass entry."""
    if pass_path:
        return utils.get_pass_value(pass_path)

    if env_value:
        return env_value

    try:
        return utils.get_pass_value(default_pass_path) or None
    except utils.PassError:
        logger.warning(f"No {label} token specified nor found")
        return None


def _env_bool(env: Mapping[str, str], name: str, *, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean (true/false), got {raw!r}"
    raise ConfigurationError(msg)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError as e:
        msg = f"{name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from e


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw.strip())
    except ValueError as e:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg) from e

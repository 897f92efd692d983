"""
GitLab to Azure DevOps Migration Tool

Provisions Azure DevOps projects, repositories and memberships for content
migrated from GitLab, on top of a retrying REST core shared by both APIs.
"""

from __future__ import annotations

from .ado_client import AdoClient
from .cli import main
from .config import ClientConfig
from .errors import NormalizedError, Side, normalize
from .exceptions import (
    ApiError,
    ConfigurationError,
    MigrationError,
    OperationFailedError,
    OperationTimeoutError,
    UnexpectedResponseError,
)
from .gitlab_client import GitLabClient
from .masking import mask
from .migrator import GitLabToAdoMigrator
from .operations import OperationPoller, OperationState, OperationStatus
from .transport import RetryingTransport
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "AdoClient",
    "ApiError",
    "ClientConfig",
    "ConfigurationError",
    "GitLabClient",
    "GitLabToAdoMigrator",
    "MigrationError",
    "NormalizedError",
    "OperationFailedError",
    "OperationPoller",
    "OperationState",
    "OperationStatus",
    "OperationTimeoutError",
    "RetryingTransport",
    "Side",
    "UnexpectedResponseError",
    "main",
    "mask",
    "normalize",
    "setup_logging",
]

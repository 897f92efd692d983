"""Idempotent ensure-X-exists procedures built on the Azure DevOps client.

Each procedure looks the resource up first and only creates it when the
lookup reports NotFound, so re-running a migration is safe.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import quote

from .exceptions import ApiError, MigrationError
from .models import EnsureResult, Found, NotFound, decode_envelope, resource_of

if TYPE_CHECKING:
    from .ado_client import AdoClient

logger: logging.Logger = logging.getLogger(__name__)

AGILE_PROCESS_TEMPLATE_ID: Final[str] = "adcc42ab-9882-485e-a3ed-7678f01f66bc"
GRAPH_API_VERSION: Final[str] = "7.1-preview.1"


def ensure_project(
    ado: AdoClient,
    name: str,
    *,
    description: str = "",
    process_template_id: str = AGILE_PROCESS_TEMPLATE_ID,
    visibility: str = "private",
) -> EnsureResult[dict[str, Any]]:
    """Return the named project, creating it (Git version control) if needed.

    Project creation is asynchronous upstream: the POST returns an operation
    reference which is polled to completion before the project list is
    re-read.

    Raises:
        OperationFailedError: The creation operation failed or was cancelled
        MigrationError: The project is still not listed after a successful creation
    """
    match ado.find_project(name):
        case Found(value=project):
            logger.info(f"Azure DevOps project '{name}' already exists")
            return EnsureResult(resource=project, created=False)
        case NotFound():
            pass

    logger.info(f"Creating Azure DevOps project '{name}'")
    body = {
        "name": name,
        "description": description,
        "visibility": visibility,
        "capabilities": {
            "versioncontrol": {"sourceControlType": "Git"},
            "processTemplate": {"templateTypeId": process_template_id},
        },
    }
    operation = resource_of(decode_envelope(ado.post("_apis/projects", body)), context="project creation")
    state = ado.wait_for_operation(str(operation["id"]))
    state.raise_for_status()
    notes = [state.detail] if state.synthesized and state.detail else []

    match ado.find_project(name, refresh=True):
        case Found(value=project):
            return EnsureResult(resource=project, created=True, notes=notes)
        case _:
            msg = f"Project '{name}' was created (operation {state.operation_id}) but is not listed"
            raise MigrationError(msg)


def ensure_repository(ado: AdoClient, project: dict[str, Any], name: str) -> EnsureResult[dict[str, Any]]:
    """Return the named Git repository in project, creating it if needed."""
    project_segment = quote(str(project["name"]), safe="")
    lookup = ado.try_get(f"{project_segment}/_apis/git/repositories/{quote(name, safe='')}")
    if isinstance(lookup, Found):
        logger.info(f"Repository '{name}' already exists in project '{project['name']}'")
        return EnsureResult(resource=resource_of(decode_envelope(lookup.value)), created=False)

    logger.info(f"Creating repository '{name}' in project '{project['name']}'")
    created = ado.post(
        f"{project_segment}/_apis/git/repositories",
        {"name": name, "project": {"id": project["id"]}},
    )
    return EnsureResult(resource=resource_of(decode_envelope(created), context=f"repository {name}"), created=True)


def ensure_group_membership(
    ado: AdoClient, container_descriptor: str, subject_descriptor: str
) -> EnsureResult[dict[str, Any]]:
    """Add a user or group (subject) to a group (container).

    A 409 Conflict means the membership already exists and is accepted as
    success. On Azure DevOps Services the graph API lives on the
    ``vssps.dev.azure.com`` host, so the client must be configured with that
    base URL.
    """
    membership = {"containerDescriptor": container_descriptor, "memberDescriptor": subject_descriptor}
    try:
        response = ado.put(
            f"_apis/graph/memberships/{subject_descriptor}/{container_descriptor}",
            api_version=GRAPH_API_VERSION,
        )
    except ApiError as e:
        if e.status == 409:
            logger.info(f"{subject_descriptor} is already a member of {container_descriptor}")
            return EnsureResult(resource=membership, created=False)
        raise
    resource = response if isinstance(response, dict) else membership
    return EnsureResult(resource=resource, created=True)

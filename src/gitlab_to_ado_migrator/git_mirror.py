"""Mirroring of Git history from the GitLab project into the Azure Repos repository."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .exceptions import MigrationError
from .masking import mask

logger: logging.Logger = logging.getLogger(__name__)

_TARGET_REMOTE = "azure"


@dataclass(frozen=True)
class MirrorResult:
    branches: int
    tags: int


def inject_credentials(url: str, token: str | None, username: str) -> str:
    """Embed ``username:token`` in an HTTPS URL; other URLs are returned unchanged.

    GitLab expects the username ``oauth2`` with a token; Azure Repos accepts
    any non-empty username with a PAT.
    """
    if not token or not url.startswith("https://"):
        return url
    host_and_path = url.removeprefix("https://").split("@", 1)[-1]
    return f"https://{username}:{token}@{host_and_path}"


def _redact(text: str, tokens: list[str | None]) -> str:
    result = mask(text)
    for token in tokens:
        if token:
            result = result.replace(token, "***")
    return result


def _git(args: list[str], *, cwd: str | None = None, tokens: list[str | None]) -> str:
    result = subprocess.run(  # noqa: S603
        ["git", *args],  # noqa: S607
        cwd=cwd,
        check=False,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        msg = f"git {args[0]} failed: {_redact(result.stderr.strip(), tokens)}"
        raise MigrationError(msg)
    return result.stdout


def _count_lines(output: str) -> int:
    return len([line for line in output.splitlines() if line.strip()])


def mirror_repository(
    source_http_url: str,
    target_remote_url: str,
    source_token: str | None,
    target_token: str,
) -> MirrorResult:
    """Copy all branches and tags from source to target through a temporary mirror clone.

    Raises:
        MigrationError: If cloning or pushing fails (tokens are redacted from the message)
    """
    tokens = [source_token, target_token]
    clone_path = tempfile.mkdtemp(prefix="gitlab_to_ado_")
    try:
        source_url = inject_credentials(source_http_url, source_token, "oauth2")
        _git(["clone", "--mirror", source_url, clone_path], tokens=tokens)

        target_url = inject_credentials(target_remote_url, target_token, "pat")
        _git(["remote", "add", _TARGET_REMOTE, target_url], cwd=clone_path, tokens=tokens)
        # Branches and tags only: GitLab's refs/merge-requests/* are not accepted by Azure Repos
        _git(["push", _TARGET_REMOTE, "--all"], cwd=clone_path, tokens=tokens)
        _git(["push", _TARGET_REMOTE, "--tags"], cwd=clone_path, tokens=tokens)

        result = MirrorResult(
            branches=_count_lines(_git(["branch", "--list"], cwd=clone_path, tokens=tokens)),
            tags=_count_lines(_git(["tag", "--list"], cwd=clone_path, tokens=tokens)),
        )
        logger.info(f"Mirrored {result.branches} branches and {result.tags} tags to {mask(target_remote_url)}")
        return result
    except OSError as e:
        msg = f"Failed to mirror repository: {_redact(str(e), tokens)}"
        raise MigrationError(msg) from e
    finally:
        if Path(clone_path).exists():
            shutil.rmtree(clone_path, ignore_errors=True)

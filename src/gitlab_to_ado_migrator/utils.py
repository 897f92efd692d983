"""
Utility functions for the GitLab to Azure DevOps migration tool.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from subprocess import CompletedProcess


class PassError(Exception):
    """Base class for errors reading secrets from the pass utility."""


class InvalidPassPathError(PassError):
    """Raised when the pass entry does not exist or its path is malformed."""


class PassphraseRequiredError(PassError):
    """Raised when the GPG key protecting the store needs a passphrase."""


_PASS_PATH_RE = re.compile(r"[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_.-]+)*")


def setup_logging(*, verbose: bool = False, log_file: str | None = "migration.log") -> None:
    """Configure root logging: console plus an appended log file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    # urllib3 logs every connection at DEBUG, including full URLs
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _run_pass(pass_path: str, *, passphrase: str | None = None) -> CompletedProcess[str]:
    env = None
    if passphrase is not None:
        env = os.environ.copy() | {"PASSWORD_STORE_GPG_OPTS": "--pinentry-mode=loopback --passphrase-fd 0"}
    return subprocess.run(  # noqa: S603
        ["pass", "show", pass_path],  # noqa: S607
        input=passphrase,
        capture_output=True,
        text=True,
        check=True,
        env=env,
    )


def get_pass_value(pass_path: str) -> str:
    """Read the first line of a pass entry (the secret itself).

    Raises:
        InvalidPassPathError: Malformed path, or no such entry in the store
        PassphraseRequiredError: The GPG key needs a passphrase and none could be read
        PassError: Any other failure of the pass utility
    """
    if not _PASS_PATH_RE.fullmatch(pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise InvalidPassPathError(msg)

    try:
        result = _run_pass(pass_path)
    except FileNotFoundError as e:
        msg = "The 'pass' utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.lower()
        if "not in the password store" in stderr:
            msg = f"Pass entry '{pass_path}' not found"
            raise InvalidPassPathError(msg) from e
        if "gpg" not in stderr or "decryption failed" not in stderr:
            msg = f"Failed to read pass entry '{pass_path}' (exit {e.returncode}): {e.stderr.strip()}"
            raise PassError(msg) from e
        # Decryption failed, most likely because the agent has no cached passphrase.
        try:
            passphrase = input("Enter passphrase for GPG key used by pass: ")
        except EOFError as eof:
            msg = "Passphrase input was interrupted. Please run the command in an interactive session."
            raise PassphraseRequiredError(msg) from eof
        try:
            result = _run_pass(pass_path, passphrase=passphrase)
        except subprocess.CalledProcessError as retry_error:
            msg = f"Failed to read pass entry '{pass_path}' with passphrase: {retry_error.stderr.strip()}"
            raise PassphraseRequiredError(msg) from retry_error

    lines = result.stdout.splitlines()
    return lines[0].strip() if lines else ""

"""
Centralized git command runner with dubious ownership handling.

Every git process gitsql starts goes through this module so that the
"dubious ownership" error (repository owned by another user, e.g. under
sudo or inside containers) is handled in one place, and so that failed
commands are recorded with their full context in the exception log.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from .exception_logger import log_exception

logger = logging.getLogger(__name__)


def get_git_environment(project_dir: Path) -> Dict[str, str]:
    """
    Get environment variables for git commands to handle dubious ownership.

    Adds a ``safe.directory`` entry through the GIT_CONFIG_COUNT mechanism
    after any GIT_CONFIG_* entries already present in the environment.

    Args:
        project_dir: Path to the repository directory

    Returns:
        Dictionary of environment variables for git commands
    """
    env = os.environ.copy()

    try:
        index = int(env.get("GIT_CONFIG_COUNT", "0"))
    except ValueError:
        index = 0

    env[f"GIT_CONFIG_KEY_{index}"] = "safe.directory"
    env[f"GIT_CONFIG_VALUE_{index}"] = str(Path(project_dir).resolve())
    env["GIT_CONFIG_COUNT"] = str(index + 1)

    # Output is parsed, never shown
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["LC_ALL"] = "C"

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Run a git command with proper environment handling for dubious ownership.

    Args:
        cmd: Git command as a list (e.g., ["git", "rev-list", "HEAD"])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        text: Whether to decode output as text
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess instance with the command result

    Raises:
        ValueError: If the command does not start with "git"
        subprocess.CalledProcessError: If check=True and command fails
        FileNotFoundError: If the git executable is not installed
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    logger.debug(f"Running {' '.join(cmd)} in {cwd}")

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=check,
            capture_output=True,
            text=text,
            timeout=timeout,
            env=get_git_environment(cwd),
        )
    except subprocess.CalledProcessError as e:
        _log_git_failure(e, cmd, cwd)
        raise


def start_git_process(cmd: List[str], cwd: Path) -> subprocess.Popen:
    """
    Start a long-running git process with binary stdin/stdout pipes.

    Used for ``git cat-file --batch``, which answers one request per line
    written to stdin. stderr is discarded; the batch protocol reports
    failures on stdout.

    Args:
        cmd: Git command as a list
        cwd: Working directory for the process

    Returns:
        The started Popen instance
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    logger.debug(f"Starting {' '.join(cmd)} in {cwd}")

    return subprocess.Popen(
        cmd,
        cwd=cwd,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        env=get_git_environment(cwd),
    )


def _log_git_failure(
    exception: subprocess.CalledProcessError,
    cmd: List[str],
    cwd: Path,
) -> None:
    """Log a git command failure with full context.

    Args:
        exception: The CalledProcessError that occurred
        cmd: Git command that failed
        cwd: Working directory
    """
    stderr = exception.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")

    context = {
        "git_command": " ".join(cmd),
        "cwd": str(cwd),
        "returncode": exception.returncode,
        "stderr": stderr or "",
    }
    log_exception(exception, context=context)

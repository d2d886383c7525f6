"""
Git Operations for Plugin Management.

This module wraps the git CLI for plugin checkouts and the plugin index.

Key features:
- Clone plugin repositories
- Fetch and checkout a ref or the remote default branch
- Read the current commit and origin URL of a checkout

Every call blocks until git exits. Failures raise GitError with the command,
exit status and stderr attached.
"""

import logging
import os
import subprocess
from pathlib import Path

from rtvm.errors import GitError

logger = logging.getLogger(__name__)

REMOTE = "origin"


def _run_git(args: list[str], cwd: Path | None = None) -> str:
    """
    Run a git command and return its stripped stdout.

    Raises:
        GitError: If git is missing, cwd is not a directory, or git exits non-zero
    """
    cmd = ["git", *args]

    if cwd is not None and not cwd.is_dir():
        raise GitError(f"Not a directory: {cwd}", command=cmd)

    # Never block on a credentials prompt for a bad URL
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    if cwd is not None:
        # cwd must be the repository itself, not a directory inside an enclosing one
        env["GIT_CEILING_DIRECTORIES"] = str(cwd.resolve().parent)

    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise GitError("git command not found. Please install git.", command=cmd, cause=e) from e
    except OSError as e:
        raise GitError(f"Failed to run git: {e}", command=cmd, cause=e) from e

    if result.returncode != 0:
        output = (result.stderr or result.stdout).strip()
        raise GitError(
            f"`{' '.join(cmd)}` failed with exit code {result.returncode}: {output}",
            command=cmd,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    return result.stdout.strip()


def clone(repo_url: str, target_dir: Path) -> None:
    """
    Clone a repository.

    Args:
        repo_url: Git repository URL
        target_dir: Target directory for clone (must not exist or be empty)

    Raises:
        GitError: If clone operation fails
    """
    target_dir.parent.mkdir(parents=True, exist_ok=True)
    _run_git(["clone", "--quiet", repo_url, str(target_dir)])


def fetch(repo_dir: Path) -> None:
    """
    Fetch branches and tags from origin, pruning deleted branches.

    Raises:
        GitError: If fetch operation fails
    """
    _run_git(["fetch", "--quiet", "--prune", "--tags", REMOTE], cwd=repo_dir)


def has_remote_branch(repo_dir: Path, branch: str) -> bool:
    """Whether origin has a branch of this name as of the last fetch."""
    try:
        _run_git(
            ["rev-parse", "--verify", "--quiet", f"refs/remotes/{REMOTE}/{branch}"],
            cwd=repo_dir,
        )
    except GitError:
        return False
    return True


def checkout(repo_dir: Path, ref: str) -> None:
    """
    Checkout a branch, tag or commit.

    A branch that exists on origin is reset to the fetched remote tip, so a
    stale local branch of the same name is never what ends up checked out.

    Raises:
        GitError: If checkout operation fails
    """
    if has_remote_branch(repo_dir, ref):
        _run_git(
            ["checkout", "--quiet", "--force", "-B", ref, f"{REMOTE}/{ref}"],
            cwd=repo_dir,
        )
        return

    _run_git(["checkout", "--quiet", "--force", ref], cwd=repo_dir)


def default_branch(repo_dir: Path) -> str:
    """
    Name of the remote's default branch (what origin/HEAD points at).

    If origin/HEAD was never recorded, ask the remote and retry once.

    Raises:
        GitError: If the default branch cannot be determined
    """
    symbolic = ["symbolic-ref", "--short", f"refs/remotes/{REMOTE}/HEAD"]
    try:
        head = _run_git(symbolic, cwd=repo_dir)
    except GitError:
        _run_git(["remote", "set-head", REMOTE, "--auto"], cwd=repo_dir)
        head = _run_git(symbolic, cwd=repo_dir)

    # "origin/main" -> "main"
    return head.split("/", 1)[1] if "/" in head else head


def checkout_default_branch(repo_dir: Path) -> str:
    """
    Point a local branch at the tip of the remote default branch and check it out.

    Returns:
        The branch name

    Raises:
        GitError: If the branch cannot be resolved or checked out
    """
    branch = default_branch(repo_dir)
    _run_git(
        ["checkout", "--quiet", "--force", "-B", branch, f"{REMOTE}/{branch}"],
        cwd=repo_dir,
    )
    return branch


def current_ref(repo_dir: Path) -> str:
    """
    Full commit hash of HEAD.

    Raises:
        GitError: If repo_dir is not a checkout
    """
    return _run_git(["rev-parse", "HEAD"], cwd=repo_dir)


def remote_url(repo_dir: Path) -> str:
    """
    URL of the origin remote.

    Raises:
        GitError: If repo_dir is not a checkout or has no origin
    """
    return _run_git(["config", "--get", f"remote.{REMOTE}.url"], cwd=repo_dir)

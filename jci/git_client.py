"""
git_client.py

Responsibility: The fixed set of git operations the commands rely on.

Every call runs `git` in the client's working directory through
`process.run_command`. Queries that answer yes/no or "maybe a value"
(`is_repository`, `remote_url`, `parse_host_remote`, `current_branch`) never
raise; mutating verbs hand the `CommandResult` back to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from jci.process import CommandResult, ProcessStartError, run_command

LOG = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"


@dataclass(frozen=True)
class HostRemote:
    owner: str
    repo: str


def parse_remote_url(url: str, host: str = "github.com") -> HostRemote | None:
    """
    Extract owner/repo from an SSH (`git@host:owner/repo.git`) or HTTPS
    (`https://host/owner/repo[.git]`) remote URL. Other shapes yield None.
    """
    url = url.strip()
    ssh_prefix = f"git@{host}:"
    https_marker = f"{host}/"

    if url.startswith(ssh_prefix):
        path = url[len(ssh_prefix) :]
    elif https_marker in url:
        path = url[url.index(https_marker) + len(https_marker) :]
    else:
        return None

    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = path.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return HostRemote(owner=parts[0], repo=parts[1])


class GitClient:
    def __init__(self, working_dir: str | Path, executable: str = "git") -> None:
        self._working_dir = Path(working_dir)
        self._executable = executable

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    def _execute(self, *args: str) -> CommandResult:
        return run_command(self._working_dir, self._executable, *args)

    def is_repository(self) -> bool:
        try:
            result = self._execute("rev-parse", "--is-inside-work-tree")
        except ProcessStartError as e:
            LOG.debug("git unavailable in %s: %s", self._working_dir, e)
            return False
        return result.success and result.stdout.strip() == "true"

    def remote_url(self) -> str | None:
        try:
            result = self._execute("remote", "get-url", "origin")
        except ProcessStartError as e:
            LOG.debug("git unavailable in %s: %s", self._working_dir, e)
            return None
        if not result.success:
            return None
        return result.stdout.strip()

    def parse_host_remote(self, host: str = "github.com") -> HostRemote | None:
        url = self.remote_url()
        if url is None:
            return None
        return parse_remote_url(url, host)

    def current_branch(self) -> str:
        # Falls back to "main" on any failure, including fresh repositories
        # where git reports no branch yet.
        try:
            result = self._execute("branch", "--show-current")
        except ProcessStartError as e:
            LOG.debug("git unavailable in %s: %s", self._working_dir, e)
            return DEFAULT_BRANCH
        branch = result.stdout.strip()
        if not result.success or not branch:
            LOG.debug("Could not determine current branch, using %s", DEFAULT_BRANCH)
            return DEFAULT_BRANCH
        return branch

    def status(self) -> CommandResult:
        return self._execute("status", "--porcelain")

    def add(self, *paths: str) -> CommandResult:
        return self._execute("add", *paths)

    def commit(self, message: str, *, sign: bool = False) -> CommandResult:
        args = ["commit"]
        if sign:
            args.append("-S")
        args.extend(["-m", message])
        return self._execute(*args)

    def push(self) -> CommandResult:
        return self._execute("push")

    def push_set_upstream(self, branch: str) -> CommandResult:
        return self._execute("push", "-u", "origin", branch)

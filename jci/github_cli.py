"""
github_cli.py

Responsibility: The fixed set of GitHub operations performed through the `gh` CLI.

This module must be the only place that:
- Builds `gh` command lines
- Constructs branch-protection endpoint paths and request bodies
- Interprets `gh api` error text for branch protection

Secret values and request bodies are passed on the child's stdin, never as
command-line arguments, so they do not show up in process listings.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jci.config import BranchRules
from jci.process import CommandResult, ProcessStartError, run_command

LOG = logging.getLogger(__name__)


def protection_endpoint(owner: str, repo: str, branch: str) -> str:
    return f"/repos/{owner}/{repo}/branches/{branch}/protection"


def build_protection_body(rules: BranchRules) -> dict[str, Any]:
    """
    Build the JSON body for `PUT /repos/{owner}/{repo}/branches/{branch}/protection`.

    Optional blocks are left out entirely (not sent as null) when disabled:
    - `required_pull_request_reviews` only when a pull request is required
    - `required_status_checks` only when checks are required and listed
    """
    body: dict[str, Any] = {}

    if rules.require_pull_request:
        body["required_pull_request_reviews"] = {
            "dismiss_stale_reviews": rules.dismiss_stale_reviews,
            "required_approving_review_count": rules.required_approvals,
        }

    if rules.require_status_checks and rules.status_checks:
        body["required_status_checks"] = {
            "strict": True,
            "contexts": list(rules.status_checks),
        }

    body["enforce_admins"] = rules.enforce_admins
    body["restrictions"] = None
    return body


def is_unprotected(result: CommandResult) -> bool:
    """
    True when a failed protection lookup just means the branch has no rules.
    """
    if result.success:
        return False
    error = result.stderr.lower()
    return "404" in error or "not protected" in error


class GitHubCli:
    def __init__(self, working_dir: str | Path, executable: str = "gh") -> None:
        self._working_dir = Path(working_dir)
        self._executable = executable

    def _execute(self, *args: str, input_text: str | None = None) -> CommandResult:
        return run_command(self._working_dir, self._executable, *args, input_text=input_text)

    def _succeeds(self, *args: str) -> bool:
        try:
            return self._execute(*args).success
        except ProcessStartError as e:
            LOG.debug("%s unavailable: %s", self._executable, e)
            return False

    def is_installed(self) -> bool:
        return self._succeeds("--version")

    def is_authenticated(self) -> bool:
        return self._succeeds("auth", "status")

    def set_secret(self, name: str, value: str) -> CommandResult:
        return self._execute("secret", "set", name, input_text=value)

    def list_secrets(self) -> CommandResult:
        return self._execute("secret", "list")

    def secret_exists(self, name: str) -> bool:
        try:
            result = self.list_secrets()
        except ProcessStartError as e:
            LOG.debug("%s unavailable: %s", self._executable, e)
            return False
        return result.success and name in result.stdout

    def apply_branch_protection(self, branch: str, owner: str, repo: str, rules: BranchRules) -> CommandResult:
        body = json.dumps(build_protection_body(rules))
        LOG.debug("Branch protection body for %s/%s@%s: %s", owner, repo, branch, body)
        return self._execute(
            "api",
            "--method",
            "PUT",
            "-H",
            "Accept: application/vnd.github+json",
            protection_endpoint(owner, repo, branch),
            "--input",
            "-",
            input_text=body,
        )

    def get_branch_protection(self, branch: str, owner: str, repo: str) -> CommandResult:
        return self._execute("api", protection_endpoint(owner, repo, branch))

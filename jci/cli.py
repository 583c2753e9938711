"""
cli.py

Responsibility: CLI entrypoint for jci.

Commands (all operate on the current working directory):
- `init`               detect build tool + GitHub remote, write `.jci.yaml`
- `commit`             stage, commit (conventional commits), optionally push
- `workflow generate`  render GitHub Actions workflows from config
- `workflow validate`  list existing workflow files
- `docker generate`    render Dockerfile and .dockerignore
- `sonar setup`        validate a SonarCloud token and store it as a repo secret
- `sonar status`       show the SonarCloud quality gate verdict
- `protect apply|show` manage branch protection through the `gh` CLI

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Build detection: `detector.py`
- git / gh subprocesses: `git_client.py`, `github_cli.py`
- Templates: `renderer.py`
- SonarCloud API: `sonar_client.py`
"""

from __future__ import annotations

import argparse
import dataclasses
import getpass
import os
import sys
from pathlib import Path
from typing import Any, Callable

from jci import __version__
from jci.config import DEFAULT_CONFIG_FILE, BranchRules, Config, ConfigError, load_config, save_config
from jci.detector import BuildTool, detect
from jci.git_client import GitClient
from jci.github_cli import GitHubCli, is_unprotected
from jci.logging_utils import configure_logging
from jci.process import ProcessStartError
from jci.renderer import RenderError, TemplateEngine
from jci.sonar_client import QualityGateStatus, SonarCloudClient, SonarError

COMMIT_TYPES = ("feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore", "revert")

WORKFLOW_TYPES = ("build", "test", "sonar", "docker")

SONAR_SECRET_NAME = "SONAR_TOKEN"


class CLIError(RuntimeError):
    pass


@dataclasses.dataclass(frozen=True)
class _WorkflowFile:
    kind: str
    template: str
    output: str
    enabled: Callable[[Config], bool]


_WORKFLOW_FILES = (
    _WorkflowFile("build", "workflows/build-{tool}.yml", "build.yml", lambda c: c.workflows.build.enabled),
    _WorkflowFile("test", "workflows/test-{tool}.yml", "test.yml", lambda c: c.workflows.test.enabled),
    _WorkflowFile("sonar", "workflows/sonar-{tool}.yml", "sonar.yml", lambda c: c.workflows.sonar.enabled),
    _WorkflowFile("docker", "workflows/docker-publish.yml", "docker-publish.yml", lambda c: c.workflows.docker.enabled),
)


def _project_dir() -> Path:
    return Path.cwd()


def _config_path(args: argparse.Namespace) -> Path:
    return _project_dir() / args.config


def _require_config(args: argparse.Namespace) -> Config:
    path = _config_path(args)
    if not path.exists():
        raise CLIError("Configuration not found. Run 'jci init' first.")
    return load_config(path)


def _require_gh(gh: GitHubCli, *, install_hint: str = "") -> None:
    if not gh.is_installed():
        raise CLIError(f"GitHub CLI (gh) is not installed. See https://cli.github.com/{install_hint}")
    if not gh.is_authenticated():
        raise CLIError("GitHub CLI is not authenticated. Run 'gh auth login' first.")


def _require_github_repo(config: Config) -> None:
    if not config.github.is_configured:
        raise CLIError("GitHub owner and repo must be configured (github.owner / github.repo).")


# --- init -------------------------------------------------------------------


def init_cmd(args: argparse.Namespace) -> int:
    project_dir = _project_dir()
    config_path = _config_path(args)

    if config_path.exists() and not args.force:
        raise CLIError(f"Configuration file already exists: {config_path} (use --force to overwrite)")

    print("Initializing jci configuration...")
    config = Config()

    if not args.no_detect:
        detection = detect(project_dir)
        if detection is not None:
            print(f"Detected: {detection.build_tool.value} project with Java {detection.java_version}")
            config = dataclasses.replace(
                config,
                build=dataclasses.replace(config.build, tool=detection.build_tool, java_version=detection.java_version),
            )
            if detection.project_name:
                config = dataclasses.replace(
                    config, project=dataclasses.replace(config.project, name=detection.project_name)
                )
        else:
            print("No Maven or Gradle project detected, using defaults")

    git = GitClient(project_dir)
    if git.is_repository():
        remote = git.parse_host_remote()
        if remote is not None:
            print(f"Detected GitHub repository: {remote.owner}/{remote.repo}")
            config = dataclasses.replace(
                config,
                github=dataclasses.replace(config.github, owner=remote.owner, repo=remote.repo),
                sonar=dataclasses.replace(
                    config.sonar,
                    organization=remote.owner,
                    project_key=f"{remote.owner}_{remote.repo}",
                ),
            )
        config = dataclasses.replace(config, git=dataclasses.replace(config.git, main_branch=git.current_branch()))

    save_config(config, config_path)
    print(f"Created configuration file: {config_path}")
    print()
    print("Next steps:")
    print(f"  1. Review and edit {config_path}")
    print("  2. Run 'jci workflow generate' to create GitHub Actions workflows")
    print("  3. Run 'jci docker generate' to create a Dockerfile")
    print("  4. Run 'jci sonar setup' to configure SonarCloud")
    return 0


# --- commit -----------------------------------------------------------------


def build_conventional_message(commit_type: str, scope: str | None, message: str) -> str:
    head = f"{commit_type}({scope})" if scope else commit_type
    return f"{head}: {message}"


def _prompt_commit_message(conventional: bool) -> str:
    if not sys.stdin.isatty():
        raise CLIError("No terminal available for interactive mode. Use -m/--message.")

    if not conventional:
        message = input("Commit message: ").strip()
        if not message:
            raise CLIError("Commit cancelled")
        return message

    print(f"Commit types: {', '.join(COMMIT_TYPES)}")
    commit_type = input("Type: ").strip()
    if commit_type not in COMMIT_TYPES:
        raise CLIError(f"Invalid commit type: {commit_type!r}")
    scope = input("Scope (optional): ").strip()
    message = input("Message: ").strip()
    if not message:
        raise CLIError("Commit cancelled")
    return build_conventional_message(commit_type, scope, message)


def commit_cmd(args: argparse.Namespace) -> int:
    git = GitClient(_project_dir())
    if not git.is_repository():
        raise CLIError("Not a git repository")

    config = load_config(_config_path(args))
    conventional = config.git.commit.conventional

    status = git.status()
    if not status.success:
        raise CLIError(f"git status failed: {status.stderr}")
    if not status.stdout.strip():
        raise CLIError("Nothing to commit, working tree clean")

    print("Changes to commit:")
    print(status.stdout)
    print()

    paths = ["."] if args.all else list(args.files or [])
    if paths:
        added = git.add(*paths)
        if not added.success:
            raise CLIError(f"Failed to stage files: {added.stderr}")

    if args.message is not None:
        if conventional and args.type:
            message = build_conventional_message(args.type, args.scope, args.message)
        else:
            message = args.message
    else:
        message = _prompt_commit_message(conventional)

    print(f"Committing with message: {message}")
    committed = git.commit(message, sign=config.git.commit.sign)
    if not committed.success:
        raise CLIError(f"Commit failed: {committed.stderr or committed.stdout}")
    print("Commit successful!")

    if args.push:
        print("Pushing to remote...")
        pushed = git.push()
        if not pushed.success:
            pushed = git.push_set_upstream(git.current_branch())
            if not pushed.success:
                raise CLIError(f"Push failed: {pushed.stderr}")
        print("Pushed successfully!")

    return 0


# --- workflow / docker --------------------------------------------------------


def workflow_context(config: Config) -> dict[str, Any]:
    # Deterministic keys; templates should reference these.
    return {
        "main_branch": config.git.main_branch,
        "java_version": config.build.java_version,
        "build_tool": config.build.tool.value,
        "is_maven": config.build.tool is BuildTool.MAVEN,
        "is_gradle": config.build.tool is BuildTool.GRADLE,
        "sonar_organization": config.sonar.organization,
        "sonar_project_key": config.sonar.project_key,
        "quality_gate_wait": config.sonar.quality_gate.wait,
        "quality_gate_timeout": config.sonar.quality_gate.timeout,
        "coverage_enabled": config.workflows.test.coverage.enabled,
        "min_coverage": config.workflows.test.coverage.min_coverage,
        "registry": config.docker.registry,
        "image_name": config.docker.image_name,
        "docker_port": config.docker.port,
    }


def docker_context(
    config: Config,
    *,
    java_version: str | None = None,
    base_image: str = "eclipse-temurin",
    port: int | None = None,
) -> dict[str, Any]:
    return {
        "java_version": java_version or config.build.java_version,
        "base_image": base_image,
        "port": port if port is not None else config.docker.port,
        "build_tool": config.build.tool.value,
        "is_maven": config.build.tool is BuildTool.MAVEN,
        "is_gradle": config.build.tool is BuildTool.GRADLE,
    }


def _render_file(
    engine: TemplateEngine,
    template: str,
    context: dict[str, Any],
    output: Path,
    *,
    force: bool,
) -> bool | None:
    """
    Render one file. Returns True when written, False when skipped because the
    file exists, and None when the template is missing.
    """
    if output.exists() and not force:
        print(f"Skipping {output.name} (exists, use --force to overwrite)")
        return False
    if not engine.template_exists(template):
        print(f"Template not found: {template}", file=sys.stderr)
        return None
    engine.render_to_file(template, context, output)
    print(f"Generated: {output}")
    return True


def workflow_generate_cmd(args: argparse.Namespace) -> int:
    config = _require_config(args)
    engine = TemplateEngine()
    workflows_dir = _project_dir() / ".github" / "workflows"
    context = workflow_context(config)

    generated = 0
    missing = 0
    for wf in _WORKFLOW_FILES:
        if args.type != "all" and args.type != wf.kind:
            continue
        if not wf.enabled(config):
            print(f"Skipping {wf.output} ({wf.kind} workflow disabled in config)")
            continue
        template = wf.template.format(tool=config.build.tool.value)
        outcome = _render_file(engine, template, context, workflows_dir / wf.output, force=args.force)
        if outcome is None:
            missing += 1
        elif outcome:
            generated += 1

    print(f"Generated {generated} workflow file(s)")
    return 1 if missing else 0


def workflow_validate_cmd(args: argparse.Namespace) -> int:
    workflows_dir = _project_dir() / ".github" / "workflows"
    if not workflows_dir.is_dir():
        raise CLIError("No workflows directory found at .github/workflows")

    print(f"Validating workflows in {workflows_dir}")
    for path in sorted(workflows_dir.iterdir()):
        if path.suffix in (".yml", ".yaml"):
            print(f"  OK: {path.name}")
    return 0


def docker_generate_cmd(args: argparse.Namespace) -> int:
    project_dir = _project_dir()
    config_path = _config_path(args)
    if config_path.exists():
        config = load_config(config_path)
    else:
        print("No config found, using defaults")
        config = Config()

    engine = TemplateEngine()
    context = docker_context(config, java_version=args.jdk, base_image=args.base, port=args.port)
    outputs = (
        (f"docker/Dockerfile.{config.build.tool.value}", project_dir / "Dockerfile"),
        ("docker/dockerignore", project_dir / ".dockerignore"),
    )

    generated = 0
    missing = 0
    for template, output in outputs:
        outcome = _render_file(engine, template, context, output, force=args.force)
        if outcome is None:
            missing += 1
        elif outcome:
            generated += 1

    print(f"Generated {generated} file(s)")
    return 1 if missing else 0


# --- sonar --------------------------------------------------------------------


def _read_sonar_token(args: argparse.Namespace) -> str:
    token = args.token or os.environ.get("SONAR_TOKEN") or ""
    if token:
        return token

    print("To generate a SonarCloud token:")
    print("  1. Go to https://sonarcloud.io/account/security")
    print("  2. Generate a new token")
    print()
    if not sys.stdin.isatty():
        raise CLIError("No terminal available. Use --token or set SONAR_TOKEN.")
    token = getpass.getpass("Enter SonarCloud token: ").strip()
    if not token:
        raise CLIError("Token is required")
    return token


def sonar_setup_cmd(args: argparse.Namespace) -> int:
    config = _require_config(args)

    print("Setting up SonarCloud integration...")
    print()
    print("Configuration:")
    print(f"  Organization: {config.sonar.organization}")
    print(f"  Project Key:  {config.sonar.project_key}")
    print()

    if not config.sonar.organization or not config.sonar.project_key:
        raise CLIError(f"SonarCloud organization and project key must be configured in {_config_path(args)}")

    token = _read_sonar_token(args)

    print("Validating token...")
    if not SonarCloudClient().validate_token(token):
        raise CLIError("Invalid SonarCloud token")
    print("Token validated successfully")

    if not args.skip_secret:
        gh = GitHubCli(_project_dir())
        _require_gh(gh, install_hint=" or use --skip-secret")
        print(f"Setting GitHub secret {SONAR_SECRET_NAME}...")
        result = gh.set_secret(SONAR_SECRET_NAME, token)
        if not result.success:
            raise CLIError(f"Failed to set secret: {result.stderr}")
        print(f"GitHub secret {SONAR_SECRET_NAME} set successfully")

    print()
    print("SonarCloud setup complete!")
    print()
    print("Next steps:")
    print("  1. Run 'jci workflow generate --type sonar' to create the SonarCloud workflow")
    print("  2. Push changes and create a PR to trigger analysis")
    return 0


def sonar_status_cmd(args: argparse.Namespace) -> int:
    config = _require_config(args)
    project_key = config.sonar.project_key
    if not project_key:
        raise CLIError("SonarCloud project key not configured")

    print(f"Checking quality gate status for: {project_key}")
    client = SonarCloudClient(token=os.environ.get("SONAR_TOKEN") or None)
    result = client.quality_gate_status(project_key)

    if result.status is QualityGateStatus.PASSED:
        print("Quality Gate: PASSED")
        return 0
    if result.status is QualityGateStatus.FAILED:
        print("Quality Gate: FAILED")
        print()
        print(f"View details at: {client.dashboard_url(project_key)}")
        return 1
    if result.status is QualityGateStatus.NOT_FOUND:
        print("Project not found on SonarCloud", file=sys.stderr)
        print("Make sure the project has been analyzed at least once.", file=sys.stderr)
        return 1
    print(f"Quality Gate: {result.body}")
    return 1


# --- protect ------------------------------------------------------------------


def _print_rules(branch: str, config: Config, rules: BranchRules) -> None:
    print(f"Branch protection rules for '{branch}':")
    print(f"  Repository: {config.github.owner}/{config.github.repo}")
    print(f"  Require pull request: {rules.require_pull_request}")
    print(f"  Required approvals: {rules.required_approvals}")
    print(f"  Dismiss stale reviews: {rules.dismiss_stale_reviews}")
    print(f"  Require status checks: {rules.require_status_checks}")
    if rules.require_status_checks:
        print(f"  Status checks: {', '.join(rules.status_checks)}")
    print(f"  Enforce for admins: {rules.enforce_admins}")
    print()


def protect_apply_cmd(args: argparse.Namespace) -> int:
    config = _require_config(args)
    _require_github_repo(config)
    branch = args.branch or config.git.main_branch
    rules = config.branch_protection.main

    _print_rules(branch, config, rules)
    if args.dry_run:
        print("[Dry run - no changes made]")
        return 0

    gh = GitHubCli(_project_dir())
    _require_gh(gh)

    print("Applying branch protection rules...")
    result = gh.apply_branch_protection(branch, config.github.owner, config.github.repo, rules)
    if not result.success:
        raise CLIError(f"Failed to apply protection: {result.stderr}")
    print("Branch protection applied successfully!")
    return 0


def protect_show_cmd(args: argparse.Namespace) -> int:
    config = _require_config(args)
    _require_github_repo(config)
    branch = args.branch or config.git.main_branch

    gh = GitHubCli(_project_dir())
    _require_gh(gh)

    print(f"Fetching protection rules for '{branch}' on {config.github.owner}/{config.github.repo}")
    print()
    result = gh.get_branch_protection(branch, config.github.owner, config.github.repo)
    if result.success:
        print("Current protection rules:")
        print(result.stdout)
    elif is_unprotected(result):
        print("No protection rules configured for this branch")
    else:
        raise CLIError(f"Failed to get protection rules: {result.stderr}")
    return 0


# --- parser -------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="jci", description="Java CI/CD automation CLI")
    p.add_argument("--version", action="version", version=f"jci {__version__}")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")
    p.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_FILE,
        help=f"Path to config file (default: {DEFAULT_CONFIG_FILE})",
    )
    sub = p.add_subparsers(dest="command", required=True)

    i = sub.add_parser("init", help="Initialize jci for a Java project")
    i.add_argument("-f", "--force", action="store_true", help="Overwrite existing configuration")
    i.add_argument("--no-detect", action="store_true", help="Skip auto-detection, use defaults")
    i.set_defaults(func=init_cmd)

    c = sub.add_parser("commit", help="Smart git commit with conventional commits support")
    c.add_argument("-m", "--message", default=None, help="Commit message")
    c.add_argument("-t", "--type", default=None, choices=COMMIT_TYPES, help="Conventional commit type")
    c.add_argument("-s", "--scope", default=None, help="Commit scope")
    c.add_argument("-p", "--push", action="store_true", help="Push after commit")
    c.add_argument("-a", "--all", action="store_true", help="Stage all changes before commit")
    c.add_argument("files", nargs="*", help="Files to stage (if not using -a)")
    c.set_defaults(func=commit_cmd)

    w = sub.add_parser("workflow", help="GitHub Actions workflow management")
    wsub = w.add_subparsers(dest="workflow_command", required=True)
    wg = wsub.add_parser("generate", help="Generate GitHub Actions workflow files")
    wg.add_argument("-t", "--type", default="all", choices=(*WORKFLOW_TYPES, "all"), help="Workflow type (default: all)")
    wg.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    wg.set_defaults(func=workflow_generate_cmd)
    wv = wsub.add_parser("validate", help="List existing workflow files")
    wv.set_defaults(func=workflow_validate_cmd)

    d = sub.add_parser("docker", help="Docker management")
    dsub = d.add_subparsers(dest="docker_command", required=True)
    dg = dsub.add_parser("generate", help="Generate Dockerfile and .dockerignore")
    dg.add_argument("--jdk", default=None, help="JDK version (default: from config)")
    dg.add_argument("--base", default="eclipse-temurin", help="Base image (default: eclipse-temurin)")
    dg.add_argument("--port", type=int, default=None, help="Application port (default: from config)")
    dg.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    dg.set_defaults(func=docker_generate_cmd)

    s = sub.add_parser("sonar", help="SonarCloud management")
    ssub = s.add_subparsers(dest="sonar_command", required=True)
    ss = ssub.add_parser("setup", help="Configure SonarCloud integration")
    ss.add_argument("--token", default=None, help="SonarCloud token (or set env SONAR_TOKEN; prompts otherwise)")
    ss.add_argument("--skip-secret", action="store_true", help="Do not set the GitHub secret")
    ss.set_defaults(func=sonar_setup_cmd)
    st = ssub.add_parser("status", help="Check SonarCloud quality gate status")
    st.set_defaults(func=sonar_status_cmd)

    pr = sub.add_parser("protect", help="GitHub branch protection management")
    psub = pr.add_subparsers(dest="protect_command", required=True)
    pa = psub.add_parser("apply", help="Apply branch protection rules from configuration")
    pa.add_argument("-b", "--branch", default=None, help="Branch to protect (default: git.mainBranch)")
    pa.add_argument("--dry-run", action="store_true", help="Show what would be applied without making changes")
    pa.set_defaults(func=protect_apply_cmd)
    ps = psub.add_parser("show", help="Show current branch protection rules")
    ps.add_argument("-b", "--branch", default=None, help="Branch to check (default: git.mainBranch)")
    ps.set_defaults(func=protect_show_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    try:
        return int(args.func(args))
    except (CLIError, ConfigError, RenderError, SonarError, ProcessStartError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

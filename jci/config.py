"""
config.py

Responsibility: The typed `.jci.yaml` model and its load/save contract.

Rules:
- Every section is a frozen dataclass whose defaults form a complete, usable
  configuration. Callers derive new values with `dataclasses.replace`.
- The mapping between the model and the on-disk keys is written out by hand
  (`to_dict` / `from_dict`), so saved documents are plain nested mappings with
  no type tags, and older documents missing newer keys load with defaults.
- Documents written by earlier releases carried type tags such as
  `!!com.jci.config.JciConfig`; those tags are ignored on load.
- A missing file or an empty document loads as the default configuration.
  Malformed YAML or values of the wrong shape raise `ConfigError`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from jci.detector import BuildTool

LOG = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".jci.yaml"
SCHEMA_VERSION = "1"


class ConfigError(ValueError):
    pass


class _Section:
    """
    Typed accessors over one mapping of a loaded document.

    `path` is the dotted location of the mapping, used in error messages.
    Missing or null keys fall back to the supplied default.
    """

    def __init__(self, data: Any, path: str) -> None:
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"`{path or 'config'}` must be a mapping, got {type(data).__name__}.")
        self._data = data
        self._path = path
        self._seen: set[str] = set()

    def _where(self, key: str) -> str:
        return f"{self._path}.{key}" if self._path else key

    def _get(self, key: str) -> Any:
        self._seen.add(key)
        return self._data.get(key)

    def section(self, key: str) -> _Section:
        return _Section(self._get(key), self._where(key))

    def get_str(self, key: str, default: str) -> str:
        value = self._get(key)
        if value is None:
            return default
        if isinstance(value, (Mapping, list)):
            raise ConfigError(f"`{self._where(key)}` must be a string.")
        return str(value)

    def get_bool(self, key: str, default: bool) -> bool:
        value = self._get(key)
        if value is None:
            return default
        if not isinstance(value, bool):
            raise ConfigError(f"`{self._where(key)}` must be true or false, got {value!r}.")
        return value

    def get_int(self, key: str, default: int, *, minimum: int | None = None) -> int:
        value = self._get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            raise ConfigError(f"`{self._where(key)}` must be an integer, got {value!r}.")
        if isinstance(value, float) and not value.is_integer():
            raise ConfigError(f"`{self._where(key)}` must be an integer, got {value!r}.")
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"`{self._where(key)}` must be an integer, got {value!r}.") from e
        if minimum is not None and number < minimum:
            raise ConfigError(f"`{self._where(key)}` must be >= {minimum}, got {number}.")
        return number

    def get_str_list(self, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
        value = self._get(key)
        if value is None:
            return default
        if not isinstance(value, list):
            raise ConfigError(f"`{self._where(key)}` must be a list of strings.")
        return tuple(str(item) for item in value)

    def get_build_tool(self, key: str, default: BuildTool) -> BuildTool:
        raw = self.get_str(key, default.value)
        try:
            return BuildTool(raw.strip().lower())
        except ValueError as e:
            allowed = ", ".join(t.value for t in BuildTool)
            raise ConfigError(f"`{self._where(key)}` must be one of: {allowed} (got {raw!r}).") from e

    def log_unknown(self) -> None:
        for key in self._data:
            if key not in self._seen:
                LOG.debug("Ignoring unknown config key: %s", self._where(str(key)))


@dataclass(frozen=True)
class ProjectConfig:
    name: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description}

    @classmethod
    def from_section(cls, s: _Section) -> ProjectConfig:
        d = cls()
        out = cls(name=s.get_str("name", d.name), description=s.get_str("description", d.description))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class BuildConfig:
    tool: BuildTool = BuildTool.MAVEN
    java_version: str = "21"

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool.value, "javaVersion": self.java_version}

    @classmethod
    def from_section(cls, s: _Section) -> BuildConfig:
        d = cls()
        out = cls(tool=s.get_build_tool("tool", d.tool), java_version=s.get_str("javaVersion", d.java_version))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class CommitConfig:
    conventional: bool = True
    sign: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"conventional": self.conventional, "sign": self.sign}

    @classmethod
    def from_section(cls, s: _Section) -> CommitConfig:
        d = cls()
        out = cls(conventional=s.get_bool("conventional", d.conventional), sign=s.get_bool("sign", d.sign))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class GitConfig:
    main_branch: str = "main"
    commit: CommitConfig = field(default_factory=CommitConfig)

    def to_dict(self) -> dict[str, Any]:
        return {"mainBranch": self.main_branch, "commit": self.commit.to_dict()}

    @classmethod
    def from_section(cls, s: _Section) -> GitConfig:
        d = cls()
        out = cls(
            main_branch=s.get_str("mainBranch", d.main_branch),
            commit=CommitConfig.from_section(s.section("commit")),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class GithubConfig:
    """Repository coordinates on GitHub; empty strings mean "not configured"."""

    owner: str = ""
    repo: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.owner) and bool(self.repo)

    def to_dict(self) -> dict[str, Any]:
        return {"owner": self.owner, "repo": self.repo}

    @classmethod
    def from_section(cls, s: _Section) -> GithubConfig:
        d = cls()
        out = cls(owner=s.get_str("owner", d.owner), repo=s.get_str("repo", d.repo))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class WorkflowToggle:
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled}

    @classmethod
    def from_section(cls, s: _Section) -> WorkflowToggle:
        out = cls(enabled=s.get_bool("enabled", cls().enabled))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class CoverageConfig:
    enabled: bool = True
    min_coverage: int = 80

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "minCoverage": self.min_coverage}

    @classmethod
    def from_section(cls, s: _Section) -> CoverageConfig:
        d = cls()
        out = cls(
            enabled=s.get_bool("enabled", d.enabled),
            min_coverage=s.get_int("minCoverage", d.min_coverage, minimum=0),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class TestWorkflowConfig:
    enabled: bool = True
    coverage: CoverageConfig = field(default_factory=CoverageConfig)

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "coverage": self.coverage.to_dict()}

    @classmethod
    def from_section(cls, s: _Section) -> TestWorkflowConfig:
        out = cls(
            enabled=s.get_bool("enabled", cls().enabled),
            coverage=CoverageConfig.from_section(s.section("coverage")),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class WorkflowsConfig:
    build: WorkflowToggle = field(default_factory=WorkflowToggle)
    test: TestWorkflowConfig = field(default_factory=TestWorkflowConfig)
    sonar: WorkflowToggle = field(default_factory=WorkflowToggle)
    docker: WorkflowToggle = field(default_factory=WorkflowToggle)

    def to_dict(self) -> dict[str, Any]:
        return {
            "build": self.build.to_dict(),
            "test": self.test.to_dict(),
            "sonar": self.sonar.to_dict(),
            "docker": self.docker.to_dict(),
        }

    @classmethod
    def from_section(cls, s: _Section) -> WorkflowsConfig:
        out = cls(
            build=WorkflowToggle.from_section(s.section("build")),
            test=TestWorkflowConfig.from_section(s.section("test")),
            sonar=WorkflowToggle.from_section(s.section("sonar")),
            docker=WorkflowToggle.from_section(s.section("docker")),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class QualityGateConfig:
    wait: bool = True
    timeout: int = 300  # seconds

    def to_dict(self) -> dict[str, Any]:
        return {"wait": self.wait, "timeout": self.timeout}

    @classmethod
    def from_section(cls, s: _Section) -> QualityGateConfig:
        d = cls()
        out = cls(wait=s.get_bool("wait", d.wait), timeout=s.get_int("timeout", d.timeout, minimum=0))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class SonarConfig:
    organization: str = ""
    project_key: str = ""
    quality_gate: QualityGateConfig = field(default_factory=QualityGateConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization": self.organization,
            "projectKey": self.project_key,
            "qualityGate": self.quality_gate.to_dict(),
        }

    @classmethod
    def from_section(cls, s: _Section) -> SonarConfig:
        d = cls()
        out = cls(
            organization=s.get_str("organization", d.organization),
            project_key=s.get_str("projectKey", d.project_key),
            quality_gate=QualityGateConfig.from_section(s.section("qualityGate")),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class DockerConfig:
    registry: str = "ghcr.io"
    image_name: str = ""
    port: int = 8080

    def to_dict(self) -> dict[str, Any]:
        return {"registry": self.registry, "imageName": self.image_name, "port": self.port}

    @classmethod
    def from_section(cls, s: _Section) -> DockerConfig:
        d = cls()
        out = cls(
            registry=s.get_str("registry", d.registry),
            image_name=s.get_str("imageName", d.image_name),
            port=s.get_int("port", d.port, minimum=0),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class BranchRules:
    require_pull_request: bool = True
    required_approvals: int = 1
    dismiss_stale_reviews: bool = True
    require_status_checks: bool = True
    status_checks: tuple[str, ...] = ("build", "test", "SonarCloud Code Analysis")
    enforce_admins: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "requirePullRequest": self.require_pull_request,
            "requiredApprovals": self.required_approvals,
            "dismissStaleReviews": self.dismiss_stale_reviews,
            "requireStatusChecks": self.require_status_checks,
            "statusChecks": list(self.status_checks),
            "enforceAdmins": self.enforce_admins,
        }

    @classmethod
    def from_section(cls, s: _Section) -> BranchRules:
        d = cls()
        out = cls(
            require_pull_request=s.get_bool("requirePullRequest", d.require_pull_request),
            required_approvals=s.get_int("requiredApprovals", d.required_approvals, minimum=0),
            dismiss_stale_reviews=s.get_bool("dismissStaleReviews", d.dismiss_stale_reviews),
            require_status_checks=s.get_bool("requireStatusChecks", d.require_status_checks),
            status_checks=s.get_str_list("statusChecks", d.status_checks),
            enforce_admins=s.get_bool("enforceAdmins", d.enforce_admins),
        )
        s.log_unknown()
        return out


@dataclass(frozen=True)
class BranchProtectionConfig:
    main: BranchRules = field(default_factory=BranchRules)

    def to_dict(self) -> dict[str, Any]:
        return {"main": self.main.to_dict()}

    @classmethod
    def from_section(cls, s: _Section) -> BranchProtectionConfig:
        out = cls(main=BranchRules.from_section(s.section("main")))
        s.log_unknown()
        return out


@dataclass(frozen=True)
class Config:
    """Root of the `.jci.yaml` document."""

    version: str = SCHEMA_VERSION
    project: ProjectConfig = field(default_factory=ProjectConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    git: GitConfig = field(default_factory=GitConfig)
    github: GithubConfig = field(default_factory=GithubConfig)
    workflows: WorkflowsConfig = field(default_factory=WorkflowsConfig)
    sonar: SonarConfig = field(default_factory=SonarConfig)
    docker: DockerConfig = field(default_factory=DockerConfig)
    branch_protection: BranchProtectionConfig = field(default_factory=BranchProtectionConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "project": self.project.to_dict(),
            "build": self.build.to_dict(),
            "git": self.git.to_dict(),
            "github": self.github.to_dict(),
            "workflows": self.workflows.to_dict(),
            "sonar": self.sonar.to_dict(),
            "docker": self.docker.to_dict(),
            "branchProtection": self.branch_protection.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Config:
        s = _Section(data, "")
        out = cls(
            version=s.get_str("version", SCHEMA_VERSION),
            project=ProjectConfig.from_section(s.section("project")),
            build=BuildConfig.from_section(s.section("build")),
            git=GitConfig.from_section(s.section("git")),
            github=GithubConfig.from_section(s.section("github")),
            workflows=WorkflowsConfig.from_section(s.section("workflows")),
            sonar=SonarConfig.from_section(s.section("sonar")),
            docker=DockerConfig.from_section(s.section("docker")),
            branch_protection=BranchProtectionConfig.from_section(s.section("branchProtection")),
        )
        s.log_unknown()
        return out


class _UntaggedLoader(yaml.SafeLoader):
    """Safe loader that builds plain values for nodes carrying unknown tags."""


def _construct_untagged(loader: _UntaggedLoader, node: yaml.Node) -> Any:
    LOG.debug("Ignoring YAML tag %s", node.tag)
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


_UntaggedLoader.add_constructor(None, _construct_untagged)


def parse_config(text: str) -> Config:
    try:
        data = yaml.load(text, Loader=_UntaggedLoader)  # noqa: S506 - SafeLoader subclass
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration: {e}") from e
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping/object at the top level.")
    return Config.from_dict(data)


def dump_config(config: Config) -> str:
    """
    Serialize to block YAML. Non-ASCII characters are written as escapes, so
    strings such as U+0085 read back unchanged.
    """
    return yaml.safe_dump(
        config.to_dict(),
        default_flow_style=False,
        sort_keys=False,
        indent=2,
    )


def load_config(path: str | Path) -> Config:
    """
    Load a configuration file, returning defaults when the file does not exist.
    """
    p = Path(path)
    if not p.exists():
        LOG.debug("No configuration at %s, using defaults", p)
        return Config()
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read configuration {p}: {e}") from e
    return parse_config(text)


def save_config(config: Config, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dump_config(config), encoding="utf-8", newline="\n")

import dataclasses

import pytest

from jci import cli
from jci.config import Config, GithubConfig, SonarConfig, load_config, save_config
from jci.detector import BuildTool
from jci.process import CommandResult
from jci.sonar_client import QualityGateResult, QualityGateStatus


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _write_config(project, config: Config) -> None:
    save_config(config, project / ".jci.yaml")


class FakeGitHubCli:
    installed = True
    authenticated = True
    protection_result = CommandResult(0, '{"enforce_admins":{"enabled":false}}', "")
    instances: list["FakeGitHubCli"] = []

    def __init__(self, working_dir):
        self.working_dir = working_dir
        self.applied = []
        self.secrets = {}
        FakeGitHubCli.instances.append(self)

    def is_installed(self):
        return self.installed

    def is_authenticated(self):
        return self.authenticated

    def apply_branch_protection(self, branch, owner, repo, rules):
        self.applied.append((branch, owner, repo, rules))
        return CommandResult(0, "", "")

    def get_branch_protection(self, branch, owner, repo):
        return self.protection_result

    def set_secret(self, name, value):
        self.secrets[name] = value
        return CommandResult(0, "", "")


@pytest.fixture
def fake_gh(monkeypatch):
    FakeGitHubCli.instances = []
    monkeypatch.setattr(cli, "GitHubCli", FakeGitHubCli)
    yield FakeGitHubCli
    FakeGitHubCli.installed = True
    FakeGitHubCli.authenticated = True
    FakeGitHubCli.protection_result = CommandResult(0, '{"enforce_admins":{"enabled":false}}', "")


def test_build_conventional_message():
    assert cli.build_conventional_message("feat", "api", "add endpoint") == "feat(api): add endpoint"
    assert cli.build_conventional_message("fix", None, "typo") == "fix: typo"
    assert cli.build_conventional_message("docs", "", "readme") == "docs: readme"


def test_init_detects_maven_project(project, capsys):
    (project / "pom.xml").write_text(
        "<project><artifactId>demo</artifactId><properties>"
        "<maven.compiler.source>17</maven.compiler.source></properties></project>"
    )

    assert cli.main(["init"]) == 0

    config = load_config(project / ".jci.yaml")
    assert config.build.tool is BuildTool.MAVEN
    assert config.build.java_version == "17"
    assert config.project.name == "demo"
    assert "Detected: maven project with Java 17" in capsys.readouterr().out


def test_init_no_detect_uses_defaults(project):
    (project / "build.gradle").write_text("sourceCompatibility = '11'\n")

    assert cli.main(["init", "--no-detect"]) == 0

    assert load_config(project / ".jci.yaml").build == Config().build


def test_init_refuses_to_overwrite_without_force(project, capsys):
    _write_config(project, Config())

    assert cli.main(["init"]) == 1
    assert "already exists" in capsys.readouterr().err
    assert cli.main(["init", "--force"]) == 0


def test_init_uses_custom_config_path(project):
    assert cli.main(["-c", "conf/jci.yaml", "init"]) == 0

    assert (project / "conf" / "jci.yaml").exists()


def test_workflow_generate_requires_config(project, capsys):
    assert cli.main(["workflow", "generate"]) == 1
    assert "Run 'jci init' first" in capsys.readouterr().err


def test_workflow_generate_all(project):
    _write_config(project, Config())

    assert cli.main(["workflow", "generate"]) == 0

    workflows = project / ".github" / "workflows"
    assert sorted(p.name for p in workflows.iterdir()) == ["build.yml", "docker-publish.yml", "sonar.yml", "test.yml"]
    assert "mvn -B package" in (workflows / "build.yml").read_text(encoding="utf-8")


def test_workflow_generate_respects_type_disabled_and_existing(project, capsys):
    config = Config()
    config = dataclasses.replace(
        config, workflows=dataclasses.replace(config.workflows, docker=dataclasses.replace(config.workflows.docker, enabled=False))
    )
    _write_config(project, config)
    workflows = project / ".github" / "workflows"
    workflows.mkdir(parents=True)
    (workflows / "build.yml").write_text("custom")

    assert cli.main(["workflow", "generate", "--type", "build"]) == 0
    assert (workflows / "build.yml").read_text() == "custom"
    assert not (workflows / "test.yml").exists()

    assert cli.main(["workflow", "generate", "--type", "docker"]) == 0
    assert not (workflows / "docker-publish.yml").exists()

    assert cli.main(["workflow", "generate", "--type", "build", "--force"]) == 0
    assert (workflows / "build.yml").read_text() != "custom"
    assert "Skipping build.yml" in capsys.readouterr().out


def test_workflow_validate(project, capsys):
    assert cli.main(["workflow", "validate"]) == 1

    workflows = project / ".github" / "workflows"
    workflows.mkdir(parents=True)
    (workflows / "build.yml").write_text("name: Build\n")
    (workflows / "notes.txt").write_text("ignore me")

    assert cli.main(["workflow", "validate"]) == 0
    out = capsys.readouterr().out
    assert "OK: build.yml" in out
    assert "notes.txt" not in out


def test_docker_generate_without_config(project, capsys):
    assert cli.main(["docker", "generate", "--port", "9000"]) == 0

    dockerfile = (project / "Dockerfile").read_text(encoding="utf-8")
    assert "EXPOSE 9000" in dockerfile
    assert "FROM eclipse-temurin:21-jdk" in dockerfile
    assert (project / ".dockerignore").exists()
    assert "No config found, using defaults" in capsys.readouterr().out


def test_docker_generate_uses_gradle_config(project):
    _write_config(project, dataclasses.replace(Config(), build=dataclasses.replace(Config().build, tool=BuildTool.GRADLE)))

    assert cli.main(["docker", "generate", "--jdk", "17"]) == 0

    dockerfile = (project / "Dockerfile").read_text(encoding="utf-8")
    assert "gradlew" in dockerfile
    assert "FROM eclipse-temurin:17-jre" in dockerfile


def test_protect_apply_requires_github_repo(project, capsys):
    _write_config(project, Config())

    assert cli.main(["protect", "apply", "--dry-run"]) == 1
    assert "owner and repo must be configured" in capsys.readouterr().err


def test_protect_apply_dry_run(project, capsys, fake_gh):
    _write_config(project, dataclasses.replace(Config(), github=GithubConfig("octo", "demo")))

    assert cli.main(["protect", "apply", "--dry-run"]) == 0

    out = capsys.readouterr().out
    assert "Branch protection rules for 'main'" in out
    assert "Status checks: build, test, SonarCloud Code Analysis" in out
    assert "[Dry run - no changes made]" in out
    assert fake_gh.instances == []


def test_protect_apply(project, fake_gh):
    config = dataclasses.replace(Config(), github=GithubConfig("octo", "demo"))
    _write_config(project, config)

    assert cli.main(["protect", "apply", "-b", "release"]) == 0

    assert fake_gh.instances[0].applied == [("release", "octo", "demo", config.branch_protection.main)]


def test_protect_apply_requires_authenticated_gh(project, capsys, fake_gh):
    _write_config(project, dataclasses.replace(Config(), github=GithubConfig("octo", "demo")))
    fake_gh.authenticated = False

    assert cli.main(["protect", "apply"]) == 1
    assert "gh auth login" in capsys.readouterr().err


def test_protect_show_without_rules(project, capsys, fake_gh):
    _write_config(project, dataclasses.replace(Config(), github=GithubConfig("octo", "demo")))
    fake_gh.protection_result = CommandResult(1, "", "gh: Branch not protected (HTTP 404)")

    assert cli.main(["protect", "show"]) == 0
    assert "No protection rules configured" in capsys.readouterr().out


def test_protect_show_reports_other_failures(project, capsys, fake_gh):
    _write_config(project, dataclasses.replace(Config(), github=GithubConfig("octo", "demo")))
    fake_gh.protection_result = CommandResult(1, "", "HTTP 403: Forbidden")

    assert cli.main(["protect", "show"]) == 1
    assert "Forbidden" in capsys.readouterr().err


def _sonar_config() -> Config:
    return dataclasses.replace(Config(), sonar=dataclasses.replace(SonarConfig(), organization="octo", project_key="octo_demo"))


def test_sonar_setup_sets_secret(project, monkeypatch, fake_gh):
    _write_config(project, _sonar_config())
    monkeypatch.setattr(cli.SonarCloudClient, "validate_token", lambda self, token: token == "good")

    assert cli.main(["sonar", "setup", "--token", "good"]) == 0
    assert fake_gh.instances[0].secrets == {"SONAR_TOKEN": "good"}


def test_sonar_setup_rejects_invalid_token(project, monkeypatch, capsys, fake_gh):
    _write_config(project, _sonar_config())
    monkeypatch.setattr(cli.SonarCloudClient, "validate_token", lambda self, token: False)

    assert cli.main(["sonar", "setup", "--token", "bad"]) == 1
    assert "Invalid SonarCloud token" in capsys.readouterr().err
    assert fake_gh.instances == []


def test_sonar_setup_requires_project_key(project, capsys):
    _write_config(project, Config())

    assert cli.main(["sonar", "setup", "--token", "x", "--skip-secret"]) == 1
    assert "organization and project key must be configured" in capsys.readouterr().err


@pytest.mark.parametrize(
    "status, code, expected",
    [
        (QualityGateStatus.PASSED, 0, "Quality Gate: PASSED"),
        (QualityGateStatus.FAILED, 1, "https://sonarcloud.io/project/overview?id=octo_demo"),
    ],
)
def test_sonar_status(project, monkeypatch, capsys, status, code, expected):
    _write_config(project, _sonar_config())
    monkeypatch.delenv("SONAR_TOKEN", raising=False)
    monkeypatch.setattr(cli.SonarCloudClient, "quality_gate_status", lambda self, key: QualityGateResult(status, ""))

    assert cli.main(["sonar", "status"]) == code
    assert expected in capsys.readouterr().out


def test_invalid_config_is_reported(project, capsys):
    (project / ".jci.yaml").write_text("build:\n  tool: ant\n")

    assert cli.main(["workflow", "generate"]) == 1
    assert "error:" in capsys.readouterr().err


def test_commit_outside_repository(project, monkeypatch, capsys):
    monkeypatch.setattr(cli.GitClient, "is_repository", lambda self: False)

    assert cli.main(["commit", "-m", "x"]) == 1
    assert "Not a git repository" in capsys.readouterr().err


class FakeGitClient:
    instances: list["FakeGitClient"] = []
    status_output = " M App.java"
    push_ok = True

    def __init__(self, working_dir):
        self.calls = []
        FakeGitClient.instances.append(self)

    def is_repository(self):
        return True

    def status(self):
        return CommandResult(0, self.status_output, "")

    def add(self, *paths):
        self.calls.append(("add", paths))
        return CommandResult(0, "", "")

    def commit(self, message, *, sign=False):
        self.calls.append(("commit", message, sign))
        return CommandResult(0, "", "")

    def push(self):
        self.calls.append(("push",))
        return CommandResult(1, "", "no upstream") if not self.push_ok else CommandResult(0, "", "")

    def current_branch(self):
        return "feature/x"

    def push_set_upstream(self, branch):
        self.calls.append(("push_set_upstream", branch))
        return CommandResult(0, "", "")


@pytest.fixture
def fake_git(monkeypatch):
    FakeGitClient.instances = []
    monkeypatch.setattr(cli, "GitClient", FakeGitClient)
    return FakeGitClient


def test_commit_conventional_with_push_fallback(project, monkeypatch, fake_git):
    monkeypatch.setattr(FakeGitClient, "push_ok", False)

    assert cli.main(["commit", "-a", "-t", "feat", "-s", "api", "-m", "add endpoint", "--push"]) == 0

    assert fake_git.instances[0].calls == [
        ("add", (".",)),
        ("commit", "feat(api): add endpoint", False),
        ("push",),
        ("push_set_upstream", "feature/x"),
    ]


def test_commit_plain_message_when_conventional_disabled(project, fake_git):
    config = Config()
    config = dataclasses.replace(
        config,
        git=dataclasses.replace(config.git, commit=dataclasses.replace(config.git.commit, conventional=False, sign=True)),
    )
    _write_config(project, config)

    assert cli.main(["commit", "-t", "feat", "-m", "just text", "App.java"]) == 0

    assert fake_git.instances[0].calls == [("add", ("App.java",)), ("commit", "just text", True)]


def test_commit_nothing_to_commit(project, monkeypatch, capsys, fake_git):
    monkeypatch.setattr(FakeGitClient, "status", lambda self: CommandResult(0, "", ""))

    assert cli.main(["commit", "-m", "x"]) == 1
    assert "Nothing to commit" in capsys.readouterr().err


def test_unreadable_config_is_reported(project, capsys):
    (project / ".jci.yaml").write_bytes(b"project:\n  name: \xff\xfe\n")

    assert cli.main(["workflow", "generate"]) == 1
    assert "error: Cannot read configuration" in capsys.readouterr().err

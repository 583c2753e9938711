"""
jci package

This package implements jci, a CLI that bootstraps CI/CD for Java projects.

Key responsibilities are split across modules:
- `process.py`: synchronous subprocess execution with captured output
- `git_client.py`: the git operations used by commands (status, commit, remotes)
- `github_cli.py`: GitHub operations through the `gh` CLI (secrets, branch protection)
- `detector.py`: Maven / Gradle detection from build descriptors
- `config.py`: the `.jci.yaml` model and its load/save contract
- `renderer.py`: Jinja2 rendering of workflow and Docker templates
- `sonar_client.py`: isolated SonarCloud web API interactions
- `cli.py`: CLI entrypoint and orchestration
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.0.0"

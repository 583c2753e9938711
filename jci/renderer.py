"""
renderer.py

Responsibility: Render named templates (workflows, Dockerfiles) with Jinja2.

Rules:
- Template names are paths relative to the templates directory, e.g.
  `workflows/build-maven.yml` or `docker/Dockerfile.gradle`.
- Unknown variables are errors (StrictUndefined); trailing newlines are kept.
- Rendered files are written as UTF-8 with `\n` newlines, creating parent
  directories as needed.
- GitHub Actions expressions (`${{ ... }}`) inside templates are wrapped in
  `{% raw %}` blocks so they pass through untouched.

This module intentionally does NOT know about git, GitHub, or CLI parsing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, TemplateNotFound

LOG = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class RenderError(RuntimeError):
    pass


class TemplateNotFoundError(RenderError):
    pass


class TemplateEngine:
    def __init__(self, templates_dir: str | Path | None = None) -> None:
        self._templates_dir = Path(templates_dir) if templates_dir is not None else DEFAULT_TEMPLATES_DIR
        self._env = Environment(
            loader=FileSystemLoader(str(self._templates_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    @property
    def templates_dir(self) -> Path:
        return self._templates_dir

    def template_exists(self, name: str) -> bool:
        try:
            self._env.loader.get_source(self._env, name)
        except TemplateNotFound:
            return False
        return True

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(name)
        except TemplateNotFound as e:
            raise TemplateNotFoundError(f"Template not found: {name}") from e
        except TemplateError as e:
            raise RenderError(f"Invalid template: {name}: {e}") from e
        try:
            return template.render(**context)
        except Exception as e:  # noqa: BLE001 - surface as RenderError
            raise RenderError(f"Failed rendering template: {name}: {e}") from e

    def render_to_file(self, name: str, context: Mapping[str, Any], output_path: str | Path) -> Path:
        out = self.render(name, context)
        dst = Path(output_path)
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(out, encoding="utf-8", newline="\n")
        LOG.debug("Rendered %s -> %s", name, dst)
        return dst

"""
detector.py

Responsibility: Best-effort detection of the build tool used by a Java project.

Precedence (first match wins): `pom.xml`, `build.gradle.kts`, `build.gradle`.
Extraction is plain regex matching over the raw file text. A descriptor that
cannot be read produces a result with default values instead of an error.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path

LOG = logging.getLogger(__name__)

DEFAULT_JAVA_VERSION = "21"

_MAVEN_JAVA_VERSION = re.compile(r"<(?:maven\.compiler\.(?:source|target)|java\.version)>([^<]+)</")
_MAVEN_ARTIFACT_ID = re.compile(r"<artifactId>([^<]+)</artifactId>")
_GRADLE_JAVA_VERSION = re.compile(
    r"(?:sourceCompatibility|targetCompatibility|languageVersion)\s*(?:=|\.set\(|\.)\s*['\"]?"
    r"(?:JavaVersion\.VERSION_|JavaLanguageVersion\.of\()?(\d+)"
)
_GRADLE_ROOT_PROJECT = re.compile(r"rootProject\.name\s*=\s*['\"]([^'\"]+)['\"]")


class BuildTool(str, enum.Enum):
    MAVEN = "maven"
    GRADLE = "gradle"


@dataclass(frozen=True)
class DetectionResult:
    build_tool: BuildTool
    java_version: str
    project_name: str
    kotlin_dsl: bool = False


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        LOG.debug("Could not read %s, using defaults: %s", path, e)
        return None


def _detect_maven(pom_xml: Path) -> DetectionResult:
    java_version = DEFAULT_JAVA_VERSION
    project_name = ""

    content = _read_text(pom_xml)
    if content is not None:
        m = _MAVEN_JAVA_VERSION.search(content)
        if m:
            java_version = m.group(1).strip()
        m = _MAVEN_ARTIFACT_ID.search(content)
        if m:
            project_name = m.group(1).strip()

    return DetectionResult(BuildTool.MAVEN, java_version, project_name, kotlin_dsl=False)


def _detect_gradle(build_file: Path, kotlin_dsl: bool) -> DetectionResult:
    java_version = DEFAULT_JAVA_VERSION
    project_name = build_file.resolve().parent.name

    content = _read_text(build_file)
    if content is not None:
        m = _GRADLE_JAVA_VERSION.search(content)
        if m:
            java_version = m.group(1)

        settings_file = build_file.parent / ("settings.gradle.kts" if kotlin_dsl else "settings.gradle")
        if settings_file.exists():
            settings = _read_text(settings_file)
            if settings is not None:
                m = _GRADLE_ROOT_PROJECT.search(settings)
                if m:
                    project_name = m.group(1).strip()

    return DetectionResult(BuildTool.GRADLE, java_version, project_name, kotlin_dsl=kotlin_dsl)


def detect(project_path: str | Path) -> DetectionResult | None:
    """
    Return what can be learned about the project's build, or None when no
    Maven or Gradle descriptor is present.
    """
    root = Path(project_path)

    pom_xml = root / "pom.xml"
    if pom_xml.exists():
        return _detect_maven(pom_xml)

    build_gradle_kts = root / "build.gradle.kts"
    if build_gradle_kts.exists():
        return _detect_gradle(build_gradle_kts, kotlin_dsl=True)

    build_gradle = root / "build.gradle"
    if build_gradle.exists():
        return _detect_gradle(build_gradle, kotlin_dsl=False)

    return None

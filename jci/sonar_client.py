"""
sonar_client.py

Responsibility: Isolate all direct SonarCloud web API interaction.

This module must be the only place that:
- Constructs SonarCloud endpoints
- Sends HTTP requests to sonarcloud.io
- Interprets SonarCloud responses

Responses are inspected for literal status markers rather than decoded into
full models. There is no retry or backoff.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

import requests

LOG = logging.getLogger(__name__)

SONARCLOUD_URL = "https://sonarcloud.io"


class SonarError(RuntimeError):
    pass


class QualityGateStatus(str, enum.Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class QualityGateResult:
    status: QualityGateStatus
    body: str = ""


class SonarCloudClient:
    def __init__(self, token: str | None = None, api_base: str = SONARCLOUD_URL) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> requests.Response:
        url = f"{self._api_base}{path}"
        auth_token = token if token is not None else self._token
        # SonarCloud takes the token as the basic-auth user with an empty password.
        auth = (auth_token, "") if auth_token else None
        LOG.debug("SonarCloud %s %s params=%s", method, url, params)
        try:
            return requests.request(
                method,
                url,
                params=params,
                auth=auth,
                headers={"User-Agent": "jci"},
                timeout=30,
            )
        except requests.RequestException as e:
            raise SonarError(f"SonarCloud request failed: {method} {path}: {e}") from e

    def dashboard_url(self, project_key: str) -> str:
        return f"{self._api_base}/project/overview?id={project_key}"

    def validate_token(self, token: str) -> bool:
        r = self._request("GET", "/api/authentication/validate", token=token)
        return r.status_code == 200 and '"valid":true' in r.text

    def quality_gate_status(self, project_key: str) -> QualityGateResult:
        r = self._request("GET", "/api/qualitygates/project_status", params={"projectKey": project_key})
        if r.status_code == 404:
            return QualityGateResult(QualityGateStatus.NOT_FOUND, r.text)
        if r.status_code != 200:
            raise SonarError(f"Failed to get quality gate status: HTTP {r.status_code}")

        body = r.text
        if '"status":"OK"' in body:
            return QualityGateResult(QualityGateStatus.PASSED, body)
        if '"status":"ERROR"' in body:
            return QualityGateResult(QualityGateStatus.FAILED, body)
        return QualityGateResult(QualityGateStatus.UNKNOWN, body)

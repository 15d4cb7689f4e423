"""HTTP client for the Tallr gateway.

Used by the ``tallr report`` command and by scripts that wrap an agent and
want to report its state. Mirrors what the Node wrapper sends.

Usage:
    from tallr.cli.api_client import TallrClient

    client = TallrClient()  # Token from TALLR_TOKEN or the .token file
    client.upsert(project={"name": "api", "repoPath": "/src/api"}, task={...})
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

import requests

from tallr.auth.token import TOKEN_ENV_VAR

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "http://127.0.0.1:4317"


class APIError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class AuthenticationError(APIError):
    """Raised on 401 responses."""


class TaskNotFound(APIError):
    """Raised on 404 responses."""


def get_gateway_url() -> str:
    url = os.environ.get("TALLR_URL", DEFAULT_GATEWAY_URL)
    return url.rstrip("/")


class TallrClient:
    """Authenticated client for the gateway's ``/v1`` API.

    Args:
        base_url: Gateway URL. Defaults to TALLR_URL or 127.0.0.1:4317
        token: Shared secret. Defaults to TALLR_TOKEN
        max_retries: Attempts on connection errors and timeouts (default: 3)
        timeout: Request timeout in seconds (default: 5)
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        max_retries: int = 3,
        timeout: int = 5,
    ):
        self.base_url = base_url or get_gateway_url()
        self.token = token if token is not None else os.environ.get(TOKEN_ENV_VAR)
        self.max_retries = max_retries
        self.timeout = timeout

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _handle_response(self, response: requests.Response) -> Any:
        status = response.status_code

        if 200 <= status < 300:
            if status == 204 or not response.text:
                return None
            try:
                return response.json()
            except json.JSONDecodeError:
                return response.text

        detail = None
        try:
            detail = response.json().get("detail")
        except (json.JSONDecodeError, AttributeError):
            detail = response.text or f"HTTP {status}"

        if status == 401:
            raise AuthenticationError(
                "Authentication failed. Check TALLR_TOKEN matches the gateway token "
                "(see: tallr token)",
                status_code=status,
                detail=detail,
            )
        if status == 404:
            raise TaskNotFound(f"Not found: {detail}", status_code=status, detail=detail)

        raise APIError(f"Request failed ({status}): {detail}", status_code=status, detail=detail)

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.base_url}{endpoint}"

        for attempt in range(self.max_retries):
            try:
                response = requests.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    timeout=self.timeout,
                    **kwargs,
                )
                return self._handle_response(response)

            except (requests.ConnectionError, requests.Timeout) as e:
                logger.warning(f"Gateway request failed (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt * 0.25)

        raise APIError(
            f"Unable to connect to {self.base_url}. Is the Tallr gateway running?",
            status_code=None,
        )

    def _post(self, endpoint: str, data: Dict[str, Any]) -> Any:
        return self._request_with_retry("POST", endpoint, json=data)

    def health(self) -> Any:
        return self._request_with_retry("GET", "/v1/health")

    def get_state(self) -> Any:
        return self._request_with_retry("GET", "/v1/state")

    def upsert(self, project: Dict[str, Any], task: Dict[str, Any]) -> Any:
        return self._post("/v1/tasks/upsert", {"project": project, "task": task})

    def update_state(
        self,
        task_id: str,
        state: str,
        details: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Any:
        body: Dict[str, Any] = {"taskId": task_id, "state": state, "details": details}
        if source:
            body["source"] = source
        return self._post("/v1/tasks/state", body)

    def update_state_enhanced(self, task_id: str, state: str, context: Dict[str, Any]) -> Any:
        return self._post(
            "/v1/tasks/state-enhanced", {"taskId": task_id, "state": state, "context": context}
        )

    def update_details(self, task_id: str, details: str) -> Any:
        return self._post("/v1/tasks/details", {"taskId": task_id, "details": details})

    def mark_done(self, task_id: str, details: Optional[str] = None) -> Any:
        return self._post("/v1/tasks/done", {"taskId": task_id, "details": details})

    def delete_task(self, task_id: str) -> Any:
        return self._post("/v1/tasks/delete", {"taskId": task_id})

    def set_pinned(self, task_id: str, pinned: bool) -> Any:
        return self._post("/v1/tasks/pin", {"taskId": task_id, "pinned": pinned})

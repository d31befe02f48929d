"""HTTP Client for the Content Ops API"""

from typing import Any

import httpx
from rich.console import Console
from rich.panel import Panel

console = Console()


class ContentOpsError(Exception):
    """Raised when the API is unreachable or answers with an error envelope"""


class APIClient:
    """HTTP client for the Content Ops API"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: int = 30,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_headers = headers or {}
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=self.default_headers,
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Unwrap the response envelope"""
        try:
            data = response.json()
        except ValueError:
            raise ContentOpsError(
                f"Invalid JSON response: {response.status_code}"
            ) from None

        if response.status_code >= 400:
            error_msg = data.get("error", {}).get("message", "Unknown error")
            console.print(Panel(f"[red]{error_msg}[/red]", title="API Error"))
            raise ContentOpsError(f"API Error {response.status_code}: {error_msg}")

        if "ok" in data:
            if not data.get("ok", False):
                error_msg = data.get("error", {}).get("message", "Request failed")
                raise ContentOpsError(error_msg)
            return data.get("data", {})

        return data

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make GET request"""
        try:
            response = self.client.get(f"/v1{path}", params=params)
            return self._handle_response(response)
        except httpx.RequestError as e:
            raise ContentOpsError(f"Connection failed: {e}") from None

    def post(self, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make POST request"""
        try:
            response = self.client.post(f"/v1{path}", json=json)
            return self._handle_response(response)
        except httpx.RequestError as e:
            raise ContentOpsError(f"Connection failed: {e}") from None


class ContentOpsClient(APIClient):
    """Typed endpoint wrappers"""

    def health_check(self) -> dict[str, Any]:
        return self.get("/healthz")

    def get_job_stats(self) -> dict[str, Any]:
        return self.get("/jobs/stats/overview")

    def retry_job(self, job_id: str) -> dict[str, Any]:
        return self.post(f"/jobs/{job_id}/retry")

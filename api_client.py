from __future__ import annotations

import json
import logging
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from config import get_settings

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status = status
        self.detail = detail if detail is not None else message


def _unwrap_list(payload: Any) -> list[dict]:
    # Paginated endpoints wrap rows in {"results": [...]}.
    if isinstance(payload, dict):
        payload = payload.get("results") or []
    if not isinstance(payload, list):
        return []
    return [row for row in payload if isinstance(row, dict)]


class ApiClient:
    """Thin JSON client for the remote finance REST API."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.token = token
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_secs

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}/"

    def request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        url = self._url(path)
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        req = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8")
        except HTTPError as exc:
            detail = _decode_error(exc)
            logger.warning(f"api_request_failed: {method} {url} status={exc.code}")
            raise ApiError(
                f"{method} {path} failed with status {exc.code}",
                status=exc.code,
                detail=detail,
            ) from exc
        except (URLError, TimeoutError) as exc:
            logger.error(f"api_unreachable: {method} {url}: {exc}")
            raise ApiError(f"Finance API unreachable for {method} {path}") from exc

        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ApiError(f"Unexpected response from {method} {path}") from exc

    def list(self, resource: str) -> list[dict]:
        return _unwrap_list(self.request("GET", resource))

    def get(self, resource: str, item_id: object) -> dict:
        return self.request("GET", f"{resource}/{item_id}")

    def create(self, resource: str, payload: dict[str, Any]) -> dict:
        return self.request("POST", resource, payload)

    def update(self, resource: str, item_id: object, payload: dict[str, Any]) -> dict:
        return self.request("PUT", f"{resource}/{item_id}", payload)

    def delete(self, resource: str, item_id: object) -> None:
        self.request("DELETE", f"{resource}/{item_id}")

    def login(self, email: str, password: str) -> dict:
        return self.request("POST", "users/login", {"email": email, "password": password})

    def register(self, payload: dict[str, Any]) -> dict:
        return self.request("POST", "users/register", payload)

    def profile(self) -> dict:
        return self.request("GET", "users/profile")

    def update_profile(self, payload: dict[str, Any]) -> dict:
        return self.request("PATCH", "users/profile", payload)


def _decode_error(exc: HTTPError) -> Any:
    try:
        raw = exc.read().decode("utf-8")
    except OSError:
        return exc.reason
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw or exc.reason

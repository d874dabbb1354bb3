from __future__ import annotations

from typing import Any

import requests

TIMEOUT = 10  # seconds


class ApiClient:
    """Thin wrapper over requests; 401 is raised as PermissionError."""

    def __init__(self, base_url: str, token: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        r = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=TIMEOUT,
            **kwargs,
        )

        if r.status_code == 401:
            raise PermissionError("401 Unauthorized (invalid or expired token, or backend restarted).")

        r.raise_for_status()
        return r.json()

    def get(self, path: str, params: dict | None = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: dict | None = None) -> Any:
        return self._request("POST", path, json=payload or {})

    def put(self, path: str, payload: dict) -> Any:
        return self._request("PUT", path, json=payload)

    def patch(self, path: str, payload: dict) -> Any:
        return self._request("PATCH", path, json=payload)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def login(self, email: str, password: str) -> str:
        # OAuth2PasswordRequestForm => x-www-form-urlencoded
        r = requests.post(
            f"{self.base_url}/api/auth/login",
            data={"username": email, "password": password},
            timeout=TIMEOUT,
        )
        r.raise_for_status()
        return r.json()["access_token"]


def error_detail(e: requests.HTTPError) -> str:
    """FastAPI puts the message in {"detail": ...}."""
    if e.response is None:
        return str(e)
    try:
        body = e.response.json()
    except ValueError:
        body = None
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, list):
        # validation errors
        detail = "; ".join(str(d.get("msg", d)) for d in detail)
    return str(detail or e)

"""
HTTP client for the Cashbook API.

Used by the Streamlit app. A ``requests.Session`` keeps the session
cookie between calls, so ``login`` once and every later call is
authenticated.
"""

from typing import Any, Optional

import requests

from cashbook.config import get_settings


# Recognition waits on the vision model; everything else is quick
DEFAULT_TIMEOUT = 15
RECOGNITION_TIMEOUT = 180


class ApiError(Exception):
    """A call failed: ``success`` was false, or the server was unreachable (status 0)."""

    def __init__(self, status: int, message: str, payload: Optional[dict] = None):
        self.status = status
        self.message = message
        self.payload = payload or {}
        super().__init__(message)

    @property
    def failed_index(self) -> Optional[int]:
        """Batch saves only: position of the item that failed."""
        return self.payload.get("failedIndex")

    @property
    def saved_transactions(self) -> list[dict]:
        """Batch saves only: records saved before the failure."""
        return self.payload.get("transactions") or []


class CashbookApiClient:
    """Thin wrapper over every API endpoint. Returns plain dicts."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = (base_url or get_settings().app.api_base_url).rstrip("/")
        self._session = session or requests.Session()
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        json_data: Any = None,
        params: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        url = f"{self.base_url}/api{path}"
        try:
            response = self._session.request(
                method,
                url,
                json=json_data,
                params=params,
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            raise ApiError(0, f"Connection failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(response.status_code, f"Unexpected response from server ({response.status_code})") from e

        if not response.ok or not data.get("success"):
            raise ApiError(response.status_code, data.get("error") or f"Request failed ({response.status_code})", data)
        return data

    @property
    def is_authenticated(self) -> bool:
        return bool(self._session.cookies.get(get_settings().session.cookie_name))

    # Auth
    def login(self, username: str, password: str) -> dict:
        return self._request("POST", "/auth/login", {"username": username, "password": password})["user"]

    def logout(self) -> None:
        self._request("POST", "/auth/logout")
        self._session.cookies.clear()

    def me(self) -> dict:
        return self._request("GET", "/auth/me")["user"]

    # Transactions
    def list_transactions(self) -> list[dict]:
        return self._request("GET", "/transactions")["transactions"]

    def create_transaction(self, data: dict) -> dict:
        return self._request("POST", "/transactions", data)["transaction"]

    def create_transactions(self, items: list[dict]) -> list[dict]:
        """Batch save; on failure the ApiError carries failed_index and saved_transactions."""
        return self._request("POST", "/transactions/batch", {"transactions": items})["transactions"]

    def update_transaction(self, transaction_id: str, changes: dict) -> dict:
        return self._request("PATCH", f"/transactions/{transaction_id}", changes)["transaction"]

    def delete_transaction(self, transaction_id: str) -> None:
        self._request("DELETE", f"/transactions/{transaction_id}")

    # Categories
    def list_categories(self, category_type: Optional[str] = None) -> list[dict]:
        params = {"type": category_type} if category_type else None
        return self._request("GET", "/categories", params=params)["categories"]

    def create_category(self, category_type: str, name: str, icon: str, color: str) -> dict:
        body = {"type": category_type, "name": name, "icon": icon, "color": color}
        return self._request("POST", "/categories", body)["category"]

    def update_category(self, category_id: str, changes: dict) -> None:
        self._request("PATCH", f"/categories/{category_id}", changes)

    def delete_category(self, category_id: str) -> None:
        self._request("DELETE", f"/categories/{category_id}")

    # Recognition
    def recognize(
        self,
        image_base64: str,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> list[dict]:
        body = {"imageBase64": image_base64}
        if api_key:
            body["apiKey"] = api_key
        if model:
            body["model"] = model
        return self._request("POST", "/recognize", body, timeout=RECOGNITION_TIMEOUT)["transactions"]

    def health(self) -> dict:
        return self._request("GET", "/health")

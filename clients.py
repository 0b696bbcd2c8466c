"""API client for the Redmine time-entry REST API."""

import requests

from models import RemoteTimeEntry

PAGE_LIMIT = 100
TIMEOUT = 30


class RemoteError(Exception):
    """User-friendly API error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        401: f"{service}: Authentication failed. Check your API key!",
        403: f"{service}: Access denied. Check your permissions or API key!",
        404: f"{service}: Resource not found. Check the base URL and ids!",
        422: f"{service}: Validation failed - {_validation_errors(response)}",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    return messages.get(status, f"{service}: HTTP {status} - {response.reason}")


def _validation_errors(response: requests.Response) -> str:
    """Extract Redmine's {"errors": [...]} list from a 422 response."""
    try:
        errors = response.json().get("errors", [])
    except ValueError:
        return response.text[:200]
    return "; ".join(errors) or "no details"


class RedmineClient:
    """Client for the Redmine REST API, scoped to time entries."""

    def __init__(self, base_url: str, api_key: str, timeout: int = TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            r = requests.request(
                method,
                url,
                headers={
                    "X-Redmine-API-Key": self.api_key,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.ConnectionError as e:
            raise RemoteError(f"Redmine: Cannot connect to {self.base_url}. Check your network! ({e})")
        except requests.exceptions.Timeout:
            raise RemoteError(f"Redmine: {method} {path} timed out. The server may be slow.")

        if not r.ok:
            raise RemoteError(_handle_api_error(r, "Redmine"), r.status_code)
        return r

    def list_entries(self, project_id: int, user_id: int, spent_on: str) -> list[RemoteTimeEntry]:
        """Fetch all time entries of a user in a project on one day."""
        entries = []
        params = {
            "project_id": project_id,
            "user_id": user_id,
            "spent_on": spent_on,
            "limit": PAGE_LIMIT,
            "offset": 0,
        }

        while True:
            data = self._request("GET", "/time_entries.json", params=params).json()
            page = data.get("time_entries", [])
            entries.extend(RemoteTimeEntry.from_api(item) for item in page)

            # Handle pagination
            total = data.get("total_count", len(entries))
            if not page or len(entries) >= total:
                break
            params["offset"] = len(entries)

        return entries

    def delete_entry(self, entry_id: int) -> None:
        """Delete a single time entry."""
        self._request("DELETE", f"/time_entries/{entry_id}.json")

    def create_entry(self, fields: dict) -> int:
        """Create a time entry and return its id."""
        r = self._request("POST", "/time_entries.json", json={"time_entry": fields})
        return r.json()["time_entry"]["id"]

    def fetch_activity_map(self, project_id: int) -> dict[str, int]:
        """Map activity names to ids for a project."""
        r = self._request(
            "GET",
            f"/projects/{project_id}.json",
            params={"include": "time_entry_activities"},
        )
        activities = r.json().get("project", {}).get("time_entry_activities", [])
        return {a["name"]: a["id"] for a in activities}

"""Data models for CSV to Redmine sync."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class TimeRecord:
    """A time record row from the CSV export."""

    date: str  # YYYY-MM-DD
    issue_id: str
    hours: Decimal
    activity_name: str
    line: int | None = None  # CSV data row number, for messages


@dataclass
class RemoteTimeEntry:
    """A time entry on the Redmine server."""

    id: int
    project_id: int
    user_id: int
    spent_on: str  # YYYY-MM-DD
    hours: Decimal
    activity_id: int
    issue_id: int | None = None

    @classmethod
    def from_api(cls, data: dict) -> "RemoteTimeEntry":
        """Build an entry from a /time_entries.json item."""
        return cls(
            id=data["id"],
            project_id=data.get("project", {}).get("id"),
            user_id=data.get("user", {}).get("id"),
            spent_on=data["spent_on"],
            hours=Decimal(str(data["hours"])),
            activity_id=data.get("activity", {}).get("id"),
            issue_id=data.get("issue", {}).get("id"),
        )


@dataclass
class SyncState:
    """State tracking for a sync operation."""

    action: str = ""
    remote_count: int = 0
    csv_count: int = 0
    deleted: int = 0
    created: int = 0
    skipped: int = 0
    verified: bool | None = None

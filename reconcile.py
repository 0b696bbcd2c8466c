"""Reconcile CSV time records against Redmine time entries.

The engine compares per-date hour totals and the entry count between the
CSV export and the server, then picks one of three actions:

    hours match | remote - csv | action
    ------------+--------------+---------------------------------------
    yes         | 0            | nothing
    no          | 0            | clean all CSV dates, create every row
    any         | > 0          | clean all CSV dates, create every row
    any         | < 0          | append, skipping rows already present
"""

import logging
from collections import defaultdict
from decimal import Decimal

from clients import RedmineClient, RemoteError
from models import RemoteTimeEntry, SyncState, TimeRecord
from patterns import Patterns

log = logging.getLogger(__name__)

NOOP = "noop"
REBUILD = "clean+rebuild"
APPEND = "append"

# Exit codes
EXIT_OK = 0
EXIT_PARAMS = 1
EXIT_CSV_FETCH = 2
EXIT_CSV_FORMAT = 3
EXIT_REMOTE_ENTRIES = 4
EXIT_ACTIVITIES = 5
EXIT_DELETE = 6
EXIT_CREATE = 7

HUNDREDTH = Decimal("0.01")


class SyncAborted(Exception):
    """A fatal step failed; carries the process exit code."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


def decide(hours_match: bool, difference: int) -> str:
    """Pick the action for a comparison result."""
    if difference > 0:
        return REBUILD
    if difference < 0:
        return APPEND
    return NOOP if hours_match else REBUILD


def distinct_dates(records: list[TimeRecord]) -> list[str]:
    return sorted({r.date for r in records})


def hours_by_date(records: list[TimeRecord]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for r in records:
        totals[r.date] += r.hours
    return totals


def _issue_value(issue_id: str) -> int | str:
    m = Patterns.ISSUE_ID.match(issue_id)
    return int(m.group(1)) if m else issue_id


class ReconciliationEngine:
    """Drive a RedmineClient until the server matches the CSV."""

    def __init__(
        self,
        client: RedmineClient,
        project_id: int,
        user_id: int,
        dry_run: bool = False,
    ):
        self.client = client
        self.project_id = project_id
        self.user_id = user_id
        self.dry_run = dry_run

    def _remote(self, date: str) -> list[RemoteTimeEntry]:
        try:
            return self.client.list_entries(self.project_id, self.user_id, date)
        except RemoteError as e:
            raise SyncAborted(f"Cannot fetch time entries for {date}: {e}", EXIT_REMOTE_ENTRIES)

    def compare_hours(self, records: list[TimeRecord]) -> tuple[bool, int]:
        """Compare per-date hour totals with the server.

        Every date must match; a mismatch on any date makes the whole
        comparison fail.

        Returns:
            (hours_match, remote_count) where remote_count is the number of
            remote entries across all CSV dates.
        """
        local = hours_by_date(records)
        all_match = True
        remote_count = 0

        for date in distinct_dates(records):
            entries = self._remote(date)
            remote_count += len(entries)
            remote_hours = sum((e.hours for e in entries), Decimal(0))
            match = local[date].quantize(HUNDREDTH) == remote_hours.quantize(HUNDREDTH)
            log.info(
                f"{date}: csv {local[date]:.2f}h, remote {remote_hours:.2f}h "
                f"({len(entries)} entries) {'OK' if match else 'MISMATCH'}"
            )
            all_match = all_match and match

        return all_match, remote_count

    def clean(self, dates: list[str]) -> int:
        """Delete every remote entry of the user on the given dates."""
        deleted = 0
        for date in dates:
            for entry in self._remote(date):
                if self.dry_run:
                    log.info(f"Would delete #{entry.id} ({entry.spent_on}, {entry.hours}h)")
                    deleted += 1
                    continue
                try:
                    self.client.delete_entry(entry.id)
                except RemoteError as e:
                    raise SyncAborted(f"Cannot delete time entry #{entry.id}: {e}", EXIT_DELETE)
                log.debug(f"Deleted #{entry.id}")
                deleted += 1
        return deleted

    def rebuild(self, records: list[TimeRecord], skip: int = 0) -> tuple[int, int]:
        """Create one remote entry per record, after the first `skip` rows.

        Returns:
            (created, skipped) where skipped counts rows with an unknown
            activity.
        """
        try:
            activities = self.client.fetch_activity_map(self.project_id)
        except RemoteError as e:
            raise SyncAborted(f"Cannot fetch activities of project {self.project_id}: {e}", EXIT_ACTIVITIES)

        created = 0
        skipped = 0
        for record in records[skip:]:
            activity_id = activities.get(record.activity_name)
            if activity_id is None:
                log.warning(
                    f"Skipping CSV row {record.line}: unknown activity '{record.activity_name}'"
                )
                skipped += 1
                continue

            fields = {
                "project_id": self.project_id,
                "user_id": self.user_id,
                "issue_id": _issue_value(record.issue_id),
                "spent_on": record.date,
                "hours": float(record.hours),
                "activity_id": activity_id,
            }
            if self.dry_run:
                log.info(f"Would create {record.date} | {record.hours}h | #{record.issue_id} | {record.activity_name}")
                created += 1
                continue
            try:
                entry_id = self.client.create_entry(fields)
            except RemoteError as e:
                raise SyncAborted(f"Cannot create time entry for CSV row {record.line}: {e}", EXIT_CREATE)
            log.debug(f"Created #{entry_id} for CSV row {record.line}")
            created += 1

        return created, skipped

    def run(self, records: list[TimeRecord]) -> SyncState:
        """Reconcile once and return what was done."""
        state = SyncState(csv_count=len(records))
        dates = distinct_dates(records)
        log.info(f"{len(records)} CSV rows across {len(dates)} date(s)")

        hours_match, state.remote_count = self.compare_hours(records)
        difference = state.remote_count - state.csv_count
        state.action = decide(hours_match, difference)
        log.info(
            f"Remote entries: {state.remote_count}, CSV rows: {state.csv_count}, "
            f"difference: {difference:+d} -> {state.action}"
        )

        if state.action == NOOP:
            log.info("Remote data already matches the CSV. Nothing to do.")
            return state

        skip = 0
        if state.action == REBUILD:
            state.deleted = self.clean(dates)
            log.info(f"{'Would delete' if self.dry_run else 'Deleted'} {state.deleted} remote entries")
        else:
            skip = state.remote_count

        state.created, state.skipped = self.rebuild(records, skip=skip)
        log.info(
            f"{'Would create' if self.dry_run else 'Created'} {state.created} entries, "
            f"skipped {state.skipped}"
        )

        if not self.dry_run:
            state.verified = self.verify(records)
        return state

    def verify(self, records: list[TimeRecord]) -> bool | None:
        """Re-run the hours comparison; the outcome is only reported."""
        try:
            match, _ = self.compare_hours(records)
        except SyncAborted as e:
            log.warning(f"Verification skipped: {e}")
            return None
        if match:
            log.info("Verification passed: remote hours match the CSV")
        else:
            log.warning("Verification failed: remote hours still differ from the CSV")
        return match

"""Load time records from a CSV export (local file or URL)."""

import csv
import io
import logging
from decimal import Decimal

import requests

from models import TimeRecord
from patterns import Patterns

log = logging.getLogger(__name__)

# CSV column -> TimeRecord field
COLUMNS = {
    "data": "date",
    "zagadnienie": "issue_id",
    "godzin": "hours",
    "activity": "activity_name",
}
TIMEOUT = 30


class FetchError(Exception):
    """The CSV source could not be retrieved."""


class FormatError(Exception):
    """The CSV content could not be parsed."""


def is_url(source: str) -> bool:
    return bool(Patterns.URL_SOURCE.match(source))


def fetch_text(source: str) -> str:
    """Read the raw CSV text from a URL or a local path."""
    if is_url(source):
        try:
            r = requests.get(source, timeout=TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Cannot download {source}: {e}")
        if not r.ok:
            raise FetchError(f"Cannot download {source}: HTTP {r.status_code} - {r.reason}")
        # Exports are UTF-8 whatever charset the server advertises
        try:
            return r.content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FormatError(f"{source} is not valid UTF-8: {e}")

    try:
        with open(source, encoding="utf-8-sig", newline="") as f:
            return f.read()
    except OSError as e:
        raise FetchError(f"Cannot open {source}: {e}")
    except UnicodeDecodeError as e:
        raise FormatError(f"{source} is not valid UTF-8: {e}")


def load_rows(source: str, delimiter: str = ",") -> list[dict]:
    """Load raw CSV rows as dicts, keyed by the header row.

    Raises:
        FetchError: The source could not be read or downloaded.
        FormatError: The content is not a CSV with the expected columns.
    """
    text = fetch_text(source)
    reader = csv.DictReader(io.StringIO(text, newline=""), delimiter=delimiter)

    try:
        header = [name.strip() for name in reader.fieldnames or []]
        missing = [col for col in COLUMNS if col not in header]
        if missing:
            raise FormatError(f"{source}: missing column(s) {', '.join(missing)}")
        reader.fieldnames = header
        return list(reader)
    except csv.Error as e:
        raise FormatError(f"{source}, line {reader.line_num}: {e}")


def parse_hours(value: str) -> Decimal:
    """Parse an hours cell, accepting a comma as decimal separator."""
    normalized = value.strip().replace(",", ".")
    if not Patterns.HOURS_VALUE.match(normalized):
        raise FormatError(f"Invalid hours value '{value}'")
    return Decimal(normalized)


def filter_records(rows: list[dict]) -> list[TimeRecord]:
    """Turn raw rows into TimeRecords, dropping rows with blank fields."""
    records = []

    for line, row in enumerate(rows, start=1):
        values = {col: (row.get(col) or "").strip() for col in COLUMNS}
        blank = [col for col, value in values.items() if not value]
        if blank:
            log.warning(f"Skipping CSV row {line}: empty {', '.join(blank)}")
            continue

        if not Patterns.DATE_FORMAT.match(values["data"]):
            raise FormatError(f"CSV row {line}: invalid date '{values['data']}', expected YYYY-MM-DD")
        try:
            hours = parse_hours(values["godzin"])
        except FormatError as e:
            raise FormatError(f"CSV row {line}: {e}")

        records.append(
            TimeRecord(
                date=values["data"],
                issue_id=values["zagadnienie"],
                hours=hours,
                activity_name=values["activity"],
                line=line,
            )
        )

    return records


def load_records(source: str, delimiter: str = ",") -> list[TimeRecord]:
    """Load and filter time records from a CSV source."""
    return filter_records(load_rows(source, delimiter))

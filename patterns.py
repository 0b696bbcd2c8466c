"""Centralized regex patterns for CSV to Redmine sync."""

import re


class Patterns:
    """Regex patterns used throughout the sync process."""

    # Remote CSV source: http://... or https://...
    URL_SOURCE = re.compile(r"^https?://", re.IGNORECASE)

    # Date format: YYYY-MM-DD
    DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    # Hours cell after normalization: 8, 7.5, .25
    HOURS_VALUE = re.compile(r"^\d*\.?\d+$")

    # Redmine issue reference: 1234 or #1234
    ISSUE_ID = re.compile(r"^#?(\d+)$")

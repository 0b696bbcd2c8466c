"""Utility functions for CSV to Redmine sync."""

import json
import logging
import os

CONFIG_FILE = "config.json"

# Connection parameters, all required
REQUIRED_PARAMS = ["api_key", "base_url", "csv", "project_id", "user_id"]

LEVEL_PREFIXES = {
    logging.DEBUG: "[.]",
    logging.INFO: "[*]",
    logging.WARNING: "[!]",
    logging.ERROR: "[!] ERROR:",
    logging.CRITICAL: "[!] ERROR:",
}


class ConsoleFormatter(logging.Formatter):
    """Prefix messages with [*] / [!] markers."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = LEVEL_PREFIXES.get(record.levelno, "[*]")
        return f"{prefix} {super().format(record)}"


def setup_logging(verbose: bool = False) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ConsoleFormatter("%(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    # Keep urllib3 connection chatter out of -v output
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config(path: str = CONFIG_FILE) -> dict:
    """Load config.json."""
    with open(path) as f:
        return json.load(f)


def load_config_safe(path: str = CONFIG_FILE) -> dict | None:
    """Load the optional config file with user-friendly error messages.

    Returns:
        Config dict ({} if the file does not exist), None if it is broken.
    """
    if not os.path.exists(path):
        return {}

    try:
        config = load_config(path)
    except json.JSONDecodeError as e:
        print(f"[!] ERROR: {path} is not valid JSON!")
        print(f"    Line {e.lineno}, column {e.colno}: {e.msg}")
        print()
        print("    Check for missing commas, quotes, or brackets.")
        return None

    if not isinstance(config, dict):
        print(f"[!] ERROR: {path} must contain a JSON object")
        return None

    if not isinstance(config.get("redmine", {}), dict):
        print(f"[!] ERROR: 'redmine' in {path} must be an object")
        return None
    return config


def merge_params(cli: dict, config: dict) -> dict:
    """Combine CLI values with the config 'redmine' section; CLI wins."""
    section = config.get("redmine", {})
    params = {}
    for key in REQUIRED_PARAMS:
        value = cli.get(key)
        if value in (None, ""):
            value = section.get(key)
        params[key] = value
    return params


def validate_params(params: dict) -> list[str]:
    """Validate connection parameters and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    errors = []

    for key in REQUIRED_PARAMS:
        if params.get(key) in (None, ""):
            errors.append(f"Missing {key} (--{key.replace('_', '-')} or redmine.{key})")

    for key in ["project_id", "user_id"]:
        value = params.get(key)
        if value in (None, ""):
            continue
        try:
            int(value)
        except (TypeError, ValueError):
            errors.append(f"{key} must be a number, got '{value}'")

    return errors

"""
Configuration Loader (``review_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``review_config.schema`` dataclasses.  Runtime callers use
``review_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from review_config.schema import DatabaseSettings, NotificationSettings, ReviewConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the parsed YAML content."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_notification_settings(data: dict[str, Any]) -> NotificationSettings:
    return NotificationSettings(
        max_attempts=int(data.get("max_attempts", 3)),
        time_zone=data.get("time_zone", "UTC"),
        datetime_format=data.get("datetime_format", "%Y-%m-%d %H:%M"),
        allocation_reviewer_email=data.get("allocation_reviewer_email"),
        templates=frozenset(data.get("templates", ())),
    )


def parse_database_settings(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=data.get("url", "sqlite:///review.db"),
        echo=bool(data.get("echo", False)),
    )


def parse_review_config(data: dict[str, Any]) -> ReviewConfig:
    """Parse a loaded YAML dict into a ``ReviewConfig``."""
    return ReviewConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        notifications=parse_notification_settings(data.get("notifications") or {}),
        database=parse_database_settings(data.get("database") or {}),
        checksum=compute_checksum(data),
    )


def load_review_config(path: Path) -> ReviewConfig:
    return parse_review_config(load_yaml_file(path))

"""
Configuration schema (``review_config.schema``).

Frozen dataclasses produced by the loader.  Nothing here reads files.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NotificationSettings:
    """Outbox relay and message formatting settings."""

    max_attempts: int = 3
    time_zone: str = "UTC"
    datetime_format: str = "%Y-%m-%d %H:%M"
    allocation_reviewer_email: str | None = None
    templates: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///review.db"
    echo: bool = False


@dataclass(frozen=True)
class ReviewConfig:
    """
    The runtime configuration artifact.

    Contract
    --------
    * Obtained only through ``review_config.get_active_config()``.
    * ``checksum`` identifies the exact YAML content it was built from.
    """

    config_id: str
    version: int
    notifications: NotificationSettings
    database: DatabaseSettings
    checksum: str = ""

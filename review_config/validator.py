"""
Configuration Validator (``review_config.validator``).

Responsibility
--------------
Checks a ``ReviewConfig`` before it is handed to services.

Invariants enforced
-------------------
* ``notifications.max_attempts >= 1``.
* Every template a workflow names is declared in ``notifications.templates``.
* The configured time zone exists in the tz database.
* ``database.url`` names a supported backend (sqlite or postgresql).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from review_config.schema import ReviewConfig


class ConfigValidationError(ValueError):
    """Configuration failed validation; ``errors`` lists every problem."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


SUPPORTED_URL_PREFIXES = ("sqlite", "postgresql")


def is_supported_database_url(url: str) -> bool:
    return bool(url) and url.startswith(SUPPORTED_URL_PREFIXES)


def validate_configuration(
    config: ReviewConfig,
    required_templates: Iterable[str] = (),
) -> ConfigValidationResult:
    """Validate a configuration against the templates the workflows emit."""
    result = ConfigValidationResult()
    settings = config.notifications

    if settings.max_attempts < 1:
        result.add_error(
            f"notifications.max_attempts must be >= 1, got {settings.max_attempts}"
        )

    try:
        ZoneInfo(settings.time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        result.add_error(f"notifications.time_zone unknown: {settings.time_zone!r}")

    if not is_supported_database_url(config.database.url):
        result.add_error(
            f"database.url must be a sqlite or postgresql URL, got {config.database.url!r}"
        )

    missing = sorted(set(required_templates) - settings.templates)
    for name in missing:
        result.add_error(f"notification template not declared: {name}")

    if settings.allocation_reviewer_email is None:
        result.add_warning(
            "notifications.allocation_reviewer_email unset; "
            "allocation submissions will not notify anyone"
        )

    return result

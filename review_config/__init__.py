"""
review_config -- single public entrypoint for review configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain settings.
    It loads a YAML set from ``review_config/sets/`` (or an override
    directory), validates it, and emits a config trace log line.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``ConfigValidationError`` -- validation errors.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from review_config.loader import load_review_config
from review_config.schema import DatabaseSettings, NotificationSettings, ReviewConfig
from review_config.validator import ConfigValidationError, validate_configuration
from review_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "NotificationSettings",
    "ReviewConfig",
    "get_active_config",
]


def get_active_config(
    config_dir: Path | None = None,
    name: str = "default",
    required_templates: Iterable[str] = (),
) -> ReviewConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Override path to configuration sets directory.
        name: Set name; ``<config_dir>/<name>.yaml`` is loaded.
        required_templates: Templates the caller's workflows will emit.

    Raises:
        FileNotFoundError: If the set does not exist.
        ConfigValidationError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = Path(sets_dir) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_review_config(path)

    validation = validate_configuration(config, required_templates)
    if not validation.is_valid:
        raise ConfigValidationError(validation.errors)
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"config_id": config.config_id, "detail": warning})

    _logger.info(
        "REVIEW_CONFIG_TRACE",
        extra={
            "trace_type": "REVIEW_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "template_count": len(config.notifications.templates),
            "max_attempts": config.notifications.max_attempts,
        },
    )
    return config

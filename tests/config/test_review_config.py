"""
Tests for review configuration loading and validation.

Covers the shipped default set, template coverage against the workflows,
validation errors, warnings, and checksum stability.
"""

from pathlib import Path

import pytest
import yaml

from review_config import ConfigValidationError, get_active_config
from review_config.loader import compute_checksum, load_review_config
from review_config.validator import validate_configuration
from review_services.review_orchestrator import all_notification_templates

DEFAULT_SET = Path(__file__).resolve().parents[2] / "review_config" / "sets" / "default.yaml"


def write_set(directory: Path, name: str = "custom", **notifications) -> Path:
    """Write a config set that copies the default one with overridden notification keys."""
    with open(DEFAULT_SET, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    data["config_id"] = name
    data["notifications"].update(notifications)
    path = directory / f"{name}.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaultSet:

    def test_loads(self):
        config = get_active_config(required_templates=all_notification_templates())
        assert config.config_id == "default"
        assert config.notifications.max_attempts == 3
        assert config.notifications.time_zone == "UTC"
        assert config.notifications.allocation_reviewer_email == "treasury@example.org"

    def test_declares_every_workflow_template(self):
        config = get_active_config()
        assert all_notification_templates() <= config.notifications.templates

    def test_emits_config_trace(self, captured_logs):
        config = get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "REVIEW_CONFIG_TRACE"]
        assert traces[-1]["checksum"] == config.checksum
        assert traces[-1]["config_id"] == "default"


class TestValidation:

    def test_missing_template_is_error(self, tmp_path):
        write_set(tmp_path, templates=["event_approved"])
        with pytest.raises(ConfigValidationError) as exc_info:
            get_active_config(tmp_path, "custom", required_templates=all_notification_templates())
        assert any("event_rejected" in e for e in exc_info.value.errors)
        assert not any("event_approved" in e for e in exc_info.value.errors)

    def test_templates_not_checked_without_requirement(self, tmp_path):
        write_set(tmp_path, templates=[])
        assert get_active_config(tmp_path, "custom").notifications.templates == frozenset()

    def test_unknown_time_zone(self, tmp_path):
        write_set(tmp_path, time_zone="Mars/Olympus_Mons")
        with pytest.raises(ConfigValidationError, match="time_zone"):
            get_active_config(tmp_path, "custom")

    @pytest.mark.parametrize("attempts", [0, -2])
    def test_max_attempts_must_be_positive(self, tmp_path, attempts):
        write_set(tmp_path, max_attempts=attempts)
        with pytest.raises(ConfigValidationError, match="max_attempts"):
            get_active_config(tmp_path, "custom")

    def test_all_errors_reported_together(self, tmp_path):
        config = load_review_config(write_set(tmp_path, max_attempts=0, time_zone="Nowhere"))
        result = validate_configuration(config)
        assert not result.is_valid
        assert len(result.errors) == 2

    def test_missing_allocation_reviewer_is_warning(self, tmp_path, captured_logs):
        write_set(tmp_path, allocation_reviewer_email=None)
        config = get_active_config(tmp_path, "custom")
        assert config.notifications.allocation_reviewer_email is None
        warnings = [r for r in captured_logs() if r["message"] == "config_warning"]
        assert len(warnings) == 1
        assert "allocation_reviewer_email" in warnings[0]["detail"]

    def test_unsupported_database_url(self, tmp_path):
        path = write_set(tmp_path)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        data["database"]["url"] = "mysql://review@localhost/review"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="database.url"):
            get_active_config(tmp_path, "custom")

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path, "absent")

    def test_missing_config_id(self, tmp_path):
        (tmp_path / "bare.yaml").write_text("version: 2\n", encoding="utf-8")
        with pytest.raises(KeyError):
            get_active_config(tmp_path, "bare")

    def test_defaults_for_omitted_sections(self, tmp_path):
        (tmp_path / "minimal.yaml").write_text("config_id: minimal\n", encoding="utf-8")
        config = get_active_config(tmp_path, "minimal")
        assert config.version == 1
        assert config.notifications.max_attempts == 3
        assert config.database.url == "sqlite:///review.db"


class TestChecksum:

    def test_stable_across_loads(self):
        assert load_review_config(DEFAULT_SET).checksum == load_review_config(DEFAULT_SET).checksum

    def test_independent_of_key_order(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_changes_with_content(self, tmp_path):
        changed = load_review_config(write_set(tmp_path, max_attempts=5))
        assert changed.checksum != load_review_config(DEFAULT_SET).checksum

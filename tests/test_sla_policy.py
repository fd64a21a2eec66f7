"""Tests for the SLA policy table and its YAML hot-reload manager."""

import pytest
from pydantic import ValidationError

from supportdesk.core import ConfigurationException
from supportdesk.tickets.domain import SLAConfig
from supportdesk.tickets.infrastructure import SLAConfigManager

from conftest import T0


class TestSLAConfig:
    def test_defaults_cover_every_priority(self):
        config = SLAConfig()

        assert config.get_sla_minutes("urgent", "first_response") == 60
        assert config.get_sla_minutes("urgent", "resolution") == 120
        assert config.get_sla_minutes("high", "resolution") == 480
        assert config.get_sla_minutes("medium", "resolution") == 1440
        assert config.get_sla_minutes("low", "resolution") == 2880
        assert config.get_warning_threshold() == 20

    def test_partial_yaml_is_filled_with_defaults(self):
        config = SLAConfig(sla_targets={"urgent": {"first_response": 15}})

        assert config.get_sla_minutes("urgent", "first_response") == 15
        assert config.get_sla_minutes("urgent", "resolution") == 120
        assert config.get_sla_minutes("low", "first_response") == 60

    def test_unknown_priority_is_a_configuration_error(self):
        with pytest.raises(ConfigurationException):
            SLAConfig().get_sla_minutes("critical", "first_response")

    def test_non_positive_target_rejected(self):
        with pytest.raises(ValidationError):
            SLAConfig(sla_targets={"high": {"resolution": 0}})

    def test_warning_threshold_must_be_percentage(self):
        with pytest.raises(ValidationError):
            SLAConfig(escalation_thresholds={"warning": 150})

    def test_due_times_are_offsets_from_creation(self):
        first_response_due, resolution_due = SLAConfig().due_times("high", T0)

        assert (first_response_due - T0).total_seconds() == 60 * 60
        assert (resolution_due - T0).total_seconds() == 8 * 60 * 60

    def test_summary_lists_known_priorities(self):
        summary = SLAConfig().to_summary()

        assert set(summary) == {"low", "medium", "high", "urgent"}
        assert summary["urgent"] == {"first_response": 60, "resolution": 120}


class TestSLAConfigManager:
    def test_missing_file_uses_defaults(self, tmp_path):
        manager = SLAConfigManager()
        config = manager.load(tmp_path / "missing.yaml")

        assert config.get_sla_minutes("medium", "resolution") == 1440
        assert manager.get_config() is config

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text(
            "sla_targets:\n"
            "  urgent:\n"
            "    first_response: 30\n"
            "    resolution: 90\n"
            "escalation_thresholds:\n"
            "  warning: 25\n"
        )

        manager = SLAConfigManager()
        manager.load(path)

        assert manager.get_config().get_sla_minutes("urgent", "first_response") == 30
        assert manager.get_config().get_warning_threshold() == 25

    def test_reload_picks_up_changes(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_targets:\n  high:\n    resolution: 240\n")
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("sla_targets:\n  high:\n    resolution: 360\n")

        assert manager.reload() is True
        assert manager.get_config().get_sla_minutes("high", "resolution") == 360

    def test_invalid_reload_keeps_previous_policy(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_targets:\n  high:\n    resolution: 240\n")
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("escalation_thresholds:\n  warning: 500\n")

        assert manager.reload() is False
        assert manager.get_config().get_sla_minutes("high", "resolution") == 240
        assert manager.get_config().get_warning_threshold() == 20

    def test_malformed_yaml_keeps_previous_policy(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("sla_targets:\n  low:\n    first_response: 45\n")
        manager = SLAConfigManager()
        manager.load(path)

        path.write_text("sla_targets: [unclosed\n")

        assert manager.reload() is False
        assert manager.get_config().get_sla_minutes("low", "first_response") == 45

    def test_reload_before_load_is_noop(self):
        assert SLAConfigManager().reload() is False

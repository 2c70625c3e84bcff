"""
Tests for settings merging and postgresql.conf rendering.
"""

import pytest

from cluster.settings import SettingKind, SettingValue, merge_settings, render_config, render_settings
from core.exceptions import InvalidConfigError


class TestSettingValue:

    @pytest.mark.parametrize("raw, kind, rendered", [
        (True, SettingKind.BOOLEAN, "yes"),
        (False, SettingKind.BOOLEAN, "no"),
        (100, SettingKind.INTEGER, "100"),
        (0.9, SettingKind.REAL, "0.9"),
        ("128MB", SettingKind.TEXT, "'128MB'"),
        ("it's", SettingKind.TEXT, "'it''s'"),
        ("", SettingKind.TEXT, "''"),
    ])
    def test_classify_and_render(self, raw, kind, rendered):
        value = SettingValue.of(raw)

        assert value.kind is kind
        assert value.render() == rendered

    def test_bool_is_not_integer(self):
        assert SettingValue.of(True).kind is SettingKind.BOOLEAN

    @pytest.mark.parametrize("raw", [None, [1, 2], {"a": 1}])
    def test_unsupported_types(self, raw):
        with pytest.raises(InvalidConfigError) as exc_info:
            SettingValue.of(raw, "work_mem")

        assert exc_info.value.context["config_key"] == "work_mem"

    def test_already_classified_value_passes_through(self):
        value = SettingValue(SettingKind.INTEGER, 5)

        assert SettingValue.of(value) is value


class TestMergeSettings:

    def test_override_replaces_in_place(self):
        merged = merge_settings(
            {"max_connections": 100, "shared_buffers": "128MB", "fsync": True},
            {"shared_buffers": "1GB", "log_statement": "all"},
        )

        assert list(merged) == ["max_connections", "shared_buffers", "fsync", "log_statement"]
        assert merged["shared_buffers"].value == "1GB"

    def test_empty_inputs(self):
        assert merge_settings(None, None) == {}
        assert render_config({}, {}) == ""


class TestRender:

    def test_rendered_lines(self):
        content = render_config(
            {"max_connections": 100, "shared_buffers": "128MB", "enabled": True},
            {},
        )

        assert content.splitlines() == [
            "max_connections = 100",
            "shared_buffers = '128MB'",
            "enabled = yes",
        ]
        assert content.endswith("\n")

    def test_render_settings_accepts_raw_values(self):
        assert render_settings({"port": 5433}) == "port = 5433\n"

    def test_override_wins_in_output(self):
        content = render_config({"listen_addresses": "*"}, {"listen_addresses": "localhost"})

        assert content == "listen_addresses = 'localhost'\n"

"""Tests for per-call settings."""

import pytest

from gocd_yaml._internal.discovery import DEFAULT_FILE_PATTERN
from gocd_yaml.settings import FILE_PATTERN_ENV, PluginSettings


def test_defaults():
    settings = PluginSettings()
    assert settings.file_pattern == DEFAULT_FILE_PATTERN == "**/*.gocd.yaml,**/*.gocd.yml"
    assert settings.default_format_version is None


def test_from_json():
    settings = PluginSettings.from_json('{"file_pattern": "ci/*.yaml", "unrelated": 1}')
    assert settings.file_pattern == "ci/*.yaml"
    assert PluginSettings.from_json("") == PluginSettings()
    assert PluginSettings.from_json('{"file_pattern": "  "}').file_pattern == DEFAULT_FILE_PATTERN


def test_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        PluginSettings.from_json("[1, 2]")


def test_from_env():
    assert PluginSettings.from_env({FILE_PATTERN_ENV: "*.yml"}).file_pattern == "*.yml"
    assert PluginSettings.from_env({}).file_pattern == DEFAULT_FILE_PATTERN


def test_explicit_pattern_wins():
    settings = PluginSettings(file_pattern="a/*.yaml")
    assert settings.merged("b/*.yaml").file_pattern == "b/*.yaml"
    assert settings.merged(None) is settings


def test_invalid_default_version():
    with pytest.raises(ValueError):
        PluginSettings(default_format_version=0)

#!/usr/bin/env python3
"""Tests for settings loading: defaults, config file, environment overrides."""

import pytest
import json
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).parent.parent))
from pydantic import ValidationError

from json_filter.config import FilterSettings, load_settings
from json_filter.errors import ConfigurationError


@pytest.mark.usefixtures("clean_environment")
class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings()
        assert settings == FilterSettings()
        assert settings.extract_path == 'response[*]'
        assert settings.fields_to_keep == ()
        assert settings.chunk_size == 64 * 1024
        assert settings.debug is False

    def test_from_file(self, config_file):
        settings = load_settings(str(config_file))
        assert settings.extract_path == 'response[*]'
        assert settings.fields_to_keep == ('personid', 'personBasic.names[*].firstName')
        assert settings.chunk_size_kb == 8

    def test_environment_wins_over_file(self, config_file, monkeypatch):
        monkeypatch.setenv('DATASOURCE_EXTRACT_PATH', 'data.people[*]')
        monkeypatch.setenv('DATASOURCE_FIELDS_TO_KEEP', 'personid, email[*].address ,')
        monkeypatch.setenv('JSON_CHUNK_SIZE', '128')
        monkeypatch.setenv('DEBUG', 'true')

        settings = load_settings(str(config_file))
        assert settings.extract_path == 'data.people[*]'
        assert settings.fields_to_keep == ('personid', 'email[*].address')
        assert settings.chunk_size_kb == 128
        assert settings.debug is True

    def test_file_fills_what_environment_leaves_out(self, config_file, monkeypatch):
        monkeypatch.setenv('JSON_CHUNK_SIZE', '16')
        settings = load_settings(str(config_file))
        assert settings.chunk_size_kb == 16
        assert settings.fields_to_keep == ('personid', 'personBasic.names[*].firstName')

    def test_empty_fields_variable_clears_file_fields(self, config_file, monkeypatch):
        monkeypatch.setenv('DATASOURCE_FIELDS_TO_KEEP', '')
        assert load_settings(str(config_file)).fields_to_keep == ()

    def test_settings_are_frozen(self):
        settings = load_settings()
        with pytest.raises(ValidationError):
            settings.chunk_size_kb = 1

    @pytest.mark.parametrize("value,expected", [
        ('1', True), ('yes', True), ('ON', True), ('0', False), ('no', False), ('off', False),
    ])
    def test_debug_values(self, value, expected, monkeypatch):
        monkeypatch.setenv('DEBUG', value)
        assert load_settings().debug is expected

    @pytest.mark.parametrize("name,value", [
        ('DATASOURCE_EXTRACT_PATH', 'response'),
        ('DATASOURCE_FIELDS_TO_KEEP', 'names[abc]'),
        ('JSON_CHUNK_SIZE', 'big'),
        ('JSON_CHUNK_SIZE', '0'),
        ('DEBUG', 'banana'),
    ])
    def test_invalid_environment(self, name, value, monkeypatch):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            load_settings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(str(tmp_path / "absent.json"))

    def test_file_not_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_settings(str(path))

    def test_fields_must_be_a_list(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"dataSource": {"fieldsToKeep": "personid"}}))
        with pytest.raises(ConfigurationError):
            load_settings(str(path))

    @pytest.mark.parametrize("raw", [
        {"dataSource": {"extractPath": "response"}},
        {"dataSource": {"fieldsToKeep": ["names[x]"]}},
        {"chunkSizeKb": -4},
        {"debug": "banana"},
    ])
    def test_invalid_values_in_file(self, tmp_path, raw):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(raw))
        with pytest.raises(ConfigurationError):
            load_settings(str(path))

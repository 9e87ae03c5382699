#!/usr/bin/env python3
"""Settings for the filter pipeline: defaults, JSON file, then environment.

Environment variables win over the config file:

    DATASOURCE_EXTRACT_PATH     extraction path, e.g. ``response[*]``
    DATASOURCE_FIELDS_TO_KEEP   comma separated field paths
    JSON_CHUNK_SIZE             read size in KB
    DEBUG                       true / false
"""
import json
import logging
import pathlib
from typing import Annotated, Any, Dict, Optional, Tuple

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from json_filter.errors import ConfigurationError
from json_filter.field_filter import parse_field_path
from json_filter.streaming_parser import parse_extract_path

logger = logging.getLogger(__name__)


class FilterSettings(BaseSettings):
    model_config = SettingsConfigDict(
        frozen=True,
        populate_by_name=True,
        case_sensitive=False,
        extra='ignore',
    )

    extract_path: str = Field('response[*]', validation_alias='DATASOURCE_EXTRACT_PATH')
    fields_to_keep: Annotated[Tuple[str, ...], NoDecode] = Field(
        (), validation_alias='DATASOURCE_FIELDS_TO_KEEP')
    chunk_size_kb: int = Field(64, gt=0, validation_alias='JSON_CHUNK_SIZE')
    debug: bool = Field(False, validation_alias='DEBUG')

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings,
                                   dotenv_settings, file_secret_settings):
        # config file values arrive as init kwargs; the environment overrides them
        return env_settings, init_settings

    @field_validator('extract_path')
    @classmethod
    def check_extract_path(cls, value: str) -> str:
        parse_extract_path(value.strip())
        return value.strip()

    @field_validator('fields_to_keep', mode='before')
    @classmethod
    def split_fields(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(',') if part.strip())
        return value

    @field_validator('fields_to_keep')
    @classmethod
    def check_fields(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        for field_path in value:
            parse_field_path(field_path)
        return value

    @property
    def chunk_size(self) -> int:
        return self.chunk_size_kb * 1024


def settings_from_file(config_path: str) -> Dict[str, Any]:
    """Read a ``{"dataSource": {...}, "chunkSizeKb": n}`` file into settings values."""
    path = pathlib.Path(config_path)
    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
    except OSError as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"config file {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config file {path} must hold a JSON object")

    data_source: Dict[str, Any] = raw.get('dataSource') or {}
    values: Dict[str, Any] = {}
    if 'extractPath' in data_source:
        values['DATASOURCE_EXTRACT_PATH'] = data_source['extractPath']
    if 'fieldsToKeep' in data_source:
        fields_to_keep = data_source['fieldsToKeep'] or []
        if not isinstance(fields_to_keep, list):
            raise ConfigurationError("dataSource.fieldsToKeep must be a list of field paths")
        values['DATASOURCE_FIELDS_TO_KEEP'] = tuple(fields_to_keep)
    if 'chunkSizeKb' in raw:
        values['JSON_CHUNK_SIZE'] = raw['chunkSizeKb']
    if 'debug' in raw:
        values['DEBUG'] = raw['debug']

    logger.debug("loaded %s settings from %s", sorted(values), path)
    return values


def load_settings(config_path: Optional[str] = None) -> FilterSettings:
    """Build validated settings; raises ConfigurationError on bad values."""
    file_values = settings_from_file(config_path) if config_path else {}
    try:
        return FilterSettings(**file_values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e

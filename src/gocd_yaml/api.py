"""Public API for the gocd_yaml package.

High-level operations a hosting server calls. Each builds what it needs for
this one call, runs to completion and answers with an EngineResponse; none
of them raises for bad input.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from gocd_yaml.kernel.exporter import ExportError
from gocd_yaml.kernel.exporter import export_pipeline as _export_pipeline
from gocd_yaml.kernel.model import Pipeline
from gocd_yaml.kernel.parser import ConfigParser
from gocd_yaml._internal.discovery import find_config_files
from gocd_yaml.reporting import (
    EngineResponse,
    RequestError,
    capabilities_body,
    handling_errors,
    success,
)
from gocd_yaml.settings import PluginSettings


def _normalize_directory(directory: Any) -> Path:
    if not isinstance(directory, (str, os.PathLike)) or not str(directory):
        raise RequestError(f"directory must be a path, got {type(directory).__name__}")
    path = Path(directory)
    if not path.is_dir():
        raise RequestError(f"directory does not exist: {path}")
    return path


def _resolve_settings(
    pattern: Optional[str],
    settings: Optional[Union[PluginSettings, Mapping[str, Any]]],
) -> PluginSettings:
    if pattern is not None and not isinstance(pattern, str):
        raise RequestError(f"pattern must be a string, got {type(pattern).__name__}")
    if settings is None:
        resolved = PluginSettings.from_env()
    elif isinstance(settings, PluginSettings):
        resolved = settings
    elif isinstance(settings, Mapping):
        try:
            resolved = PluginSettings(**settings)
        except ValueError as e:
            raise RequestError(f"invalid settings: {e}")
    else:
        raise RequestError(f"settings must be a mapping, got {type(settings).__name__}")
    return resolved.merged(pattern)


@handling_errors
def parse_contents(
    contents: Mapping[str, Union[str, bytes]],
    default_format_version: Optional[int] = None,
) -> EngineResponse:
    """Parse in-memory documents keyed by logical path.

    Returns:
        success with the collection's serialized form as body
    """
    if not isinstance(contents, Mapping):
        raise RequestError(f"contents must be a mapping of path to text, got {type(contents).__name__}")
    for location, content in contents.items():
        if not isinstance(location, str) or not isinstance(content, (str, bytes)):
            raise RequestError(f"contents entry {location!r} must map a path to text")
    if default_format_version is not None and (
        isinstance(default_format_version, bool) or not isinstance(default_format_version, int)
    ):
        raise RequestError("default_format_version must be an integer")

    collection = ConfigParser(default_format_version).parse_contents(contents)
    return success(collection.to_json())


@handling_errors
def parse_directory(
    directory: Union[str, os.PathLike],
    pattern: Optional[str] = None,
    settings: Optional[Union[PluginSettings, Mapping[str, Any]]] = None,
) -> EngineResponse:
    """Discover and parse every matching file under a directory."""
    base_dir = _normalize_directory(directory)
    resolved = _resolve_settings(pattern, settings)
    files = find_config_files(base_dir, resolved.file_pattern)
    collection = ConfigParser(resolved.default_format_version).parse_files(base_dir, files)
    return success(collection.to_json())


@handling_errors
def list_config_files(
    directory: Union[str, os.PathLike],
    pattern: Optional[str] = None,
    settings: Optional[Union[PluginSettings, Mapping[str, Any]]] = None,
) -> EngineResponse:
    """Relative paths of the files parse_directory would read."""
    base_dir = _normalize_directory(directory)
    resolved = _resolve_settings(pattern, settings)
    return success({"files": find_config_files(base_dir, resolved.file_pattern)})


@handling_errors
def export_pipeline(pipeline: Union[Pipeline, Dict[str, Any]]) -> EngineResponse:
    """Render one pipeline as YAML.

    Returns:
        success with ``{"pipeline": text}`` and the content type and
        suggested filename in the headers
    """
    try:
        result = _export_pipeline(pipeline)
    except ExportError as e:
        raise RequestError(e.message)
    return success(
        {"pipeline": result.pipeline},
        headers={"Content-Type": result.content_type, "X-Export-Filename": result.filename},
    )


@handling_errors
def get_capabilities() -> EngineResponse:
    return success(capabilities_body())

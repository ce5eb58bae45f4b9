"""Per-call engine settings.

Settings are a value passed into each call, never module state. They can be
built from keyword arguments, from the JSON blob a hosting server sends, or
from the process environment.
"""

import json
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gocd_yaml._internal.discovery import DEFAULT_FILE_PATTERN, split_patterns

FILE_PATTERN_ENV = "GOCD_YAML_FILE_PATTERN"


class PluginSettings(BaseModel):
    """File discovery and version fallback for one request."""
    file_pattern: str = DEFAULT_FILE_PATTERN
    default_format_version: Optional[int] = Field(None, ge=1)

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("file_pattern", mode="before")
    @classmethod
    def _blank_means_default(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not split_patterns(value)):
            return DEFAULT_FILE_PATTERN
        return value

    @classmethod
    def from_json(cls, text: str) -> "PluginSettings":
        """Parse ``{"file_pattern": ...}``; an empty body gives the defaults."""
        if not text or not text.strip():
            return cls()
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("settings must be a JSON object")
        return cls(**data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PluginSettings":
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        if environ.get(FILE_PATTERN_ENV):
            values["file_pattern"] = environ[FILE_PATTERN_ENV]
        return cls(**values)

    def merged(self, file_pattern: Optional[str] = None) -> "PluginSettings":
        """Copy with an explicit per-call pattern taking precedence."""
        if not file_pattern:
            return self
        return self.model_copy(update={"file_pattern": file_pattern})

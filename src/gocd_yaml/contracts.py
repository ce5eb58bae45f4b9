"""Public reporting models for gocd_yaml package."""

from typing import Dict

from pydantic import BaseModel, ConfigDict

from gocd_yaml.codes import ErrorCode


class PluginError(BaseModel):
    """A single reported problem: what went wrong and where it came from."""
    message: str
    location: str  # file path, or COLLECTION_SCOPE / ENGINE_SCOPE
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> Dict[str, str]:
        return {"message": self.message, "location": self.location, "code": self.code.value}


class Capabilities(BaseModel):
    """Static descriptor of what this engine supports."""
    supports_parse_directory: bool = True
    supports_parse_content: bool = True
    supports_pipeline_export: bool = True
    supports_list_config_files: bool = True
    supports_pluggable_tasks: bool = True
    supports_user_defined_properties: bool = False

    model_config = ConfigDict(frozen=True)


class ExportResult(BaseModel):
    """YAML text for one exported pipeline plus delivery hints."""
    pipeline: str
    filename: str  # "<pipeline-name>.gocd.yaml"
    content_type: str = "application/x-yaml; charset=utf-8"

    model_config = ConfigDict(frozen=True)

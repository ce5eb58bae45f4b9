"""gocd_yaml: GoCD YAML config-repo parsing, merging and export."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("gocd-yaml-config")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from gocd_yaml.api import (
    export_pipeline,
    get_capabilities,
    list_config_files,
    parse_contents,
    parse_directory,
)
from gocd_yaml.codes import ErrorCode
from gocd_yaml.contracts import Capabilities, ExportResult, PluginError
from gocd_yaml.reporting import EngineResponse, Outcome
from gocd_yaml.settings import PluginSettings

__all__ = [
    "__version__",
    "parse_contents",
    "parse_directory",
    "export_pipeline",
    "list_config_files",
    "get_capabilities",
    "Capabilities",
    "EngineResponse",
    "ErrorCode",
    "ExportResult",
    "Outcome",
    "PluginError",
    "PluginSettings",
]

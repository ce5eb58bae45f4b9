"""Error code constants for gocd_yaml.

These constants prevent stringly-typed error codes and ensure
client code uses the correct codes when inspecting a collection.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes attached to every reported PluginError."""

    # File-scoped (collected against the offending file)
    MALFORMED_DOCUMENT = "MALFORMED_DOCUMENT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"
    INVALID_FIELD_VALUE = "INVALID_FIELD_VALUE"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    UNREADABLE_FILE = "UNREADABLE_FILE"

    # Collection-scoped (computed at finalize time)
    VERSION_MISMATCH = "VERSION_MISMATCH"

    # Boundary
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Context labels for errors that do not belong to a single file.
# Angle brackets keep them apart from any discovered relative path.
COLLECTION_SCOPE = "<collection>"
ENGINE_SCOPE = "<engine>"

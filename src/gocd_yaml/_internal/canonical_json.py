"""Centralized JSON serialization for reports.

Collections and capability descriptors are written the same way everywhere
(CLI output, report files, test snapshots) so two runs over the same
repository produce byte-identical output.
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Canonical JSON serialization for byte-stable reports.

    Rules:
    - UTF-8 (non-ASCII characters are kept as is)
    - Sorted keys
    - Stable separators (",", ":")
    - List order is preserved; callers supply lists in their meaningful order

    Args:
        obj: Python object to serialize

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False
    )


def pretty_dumps(obj: Any) -> str:
    """Indented variant of canonical_dumps for terminal output."""
    return json.dumps(obj, sort_keys=True, indent=2, ensure_ascii=False)

"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed gocd_yaml package.
"""

import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def write_repo(tmp_path):
    """Write ``{relative path: YAML text}`` under tmp_path and return the base dir."""

    def _write(files, base: Path = None) -> Path:
        base = base or tmp_path
        for relative, text in files.items():
            target = base / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(text, bytes):
                target.write_bytes(text)
            else:
                target.write_text(textwrap.dedent(text), encoding="utf-8")
        return base

    return _write

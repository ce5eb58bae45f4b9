"""Config file discovery under a base directory.

Patterns are comma separated globs in gitignore syntax, anchored at the base
directory: ``**`` spans directories, ``*`` and ``?`` stay within one path
segment. Matching is case-insensitive and runs against POSIX-style paths
relative to the base directory.
"""

import logging
from pathlib import Path
from typing import List

from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

logger = logging.getLogger(__name__)

DEFAULT_FILE_PATTERN = "**/*.gocd.yaml,**/*.gocd.yml"

# VCS metadata is never configuration
SKIPPED_DIRECTORIES = frozenset({".git", ".hg", ".svn"})


def split_patterns(pattern: str) -> List[str]:
    return [part.strip() for part in pattern.split(",") if part.strip()]


def compile_patterns(pattern: str) -> PathSpec:
    """One matcher for a comma separated pattern; match it against lowercased paths.

    A glob without a leading slash would match at any depth in gitignore
    syntax, so every glob is rooted at the base directory first.
    """
    lines = []
    for glob in split_patterns(pattern):
        glob = glob.lower()
        lines.append(glob if glob.startswith("/") else "/" + glob)
    return PathSpec.from_lines(GitWildMatchPattern, lines)


def _rel_for_match(path: Path, base: Path) -> str:
    return path.relative_to(base).as_posix()


def find_config_files(base_dir: Path, pattern: str = DEFAULT_FILE_PATTERN) -> List[str]:
    """Relative POSIX paths of matching files, in lexical order.

    Raises:
        NotADirectoryError: base_dir is not an existing directory
    """
    base_dir = Path(base_dir)
    if not base_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {base_dir}")
    spec = compile_patterns(pattern)

    found = []
    for path in base_dir.rglob("*"):
        rel = _rel_for_match(path, base_dir)
        if SKIPPED_DIRECTORIES.intersection(rel.split("/")[:-1]):
            continue
        if not path.is_file():
            continue
        if spec.match_file(rel.lower()):
            found.append(rel)
    found.sort()
    logger.debug("Found %d config file(s) under %s matching %s", len(found), base_dir, pattern)
    return found

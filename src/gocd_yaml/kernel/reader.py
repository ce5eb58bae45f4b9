"""Document reader: YAML text in, raw nested structure out.

The raw structure is plain Python: dicts (mappings, keys unique), lists
(sequences) and scalars (str, int, float, bool, None). Nothing downstream of
the transform layer ever sees it.
"""

from typing import Any, Dict, List, Optional, Union

import yaml
from yaml.constructor import ConstructorError

from gocd_yaml.codes import ErrorCode

RawNode = Union[Dict[str, Any], List[Any], str, int, float, bool, None]

_MERGE_TAG = "tag:yaml.org,2002:merge"


class MalformedDocument(ValueError):
    """Raised when a document cannot be read into a raw node tree."""

    def __init__(
        self,
        filename: str,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        code: ErrorCode = ErrorCode.MALFORMED_DOCUMENT,
    ):
        self.filename = filename
        self.message = message
        self.line = line
        self.column = column
        self.code = code
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.line is None:
            return f"{self.filename}: {self.message}"
        return f"{self.filename} (line {self.line}, column {self.column}): {self.message}"


class DuplicateKeyError(ConstructorError):
    """A mapping declares the same key twice."""


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys.

    Keys pulled in through merge keys (``<<: *anchor``) may be overridden
    by explicit keys; only explicit repeats are rejected.
    """

    def construct_mapping(self, node, deep=False):
        if isinstance(node, yaml.MappingNode):
            seen = set()
            for key_node, _ in node.value:
                if key_node.tag == _MERGE_TAG:
                    continue
                key = self.construct_object(key_node, deep=deep)
                try:
                    duplicate = key in seen
                except TypeError:
                    # unhashable keys are reported by the base constructor
                    continue
                if duplicate:
                    raise DuplicateKeyError(
                        "while constructing a mapping",
                        node.start_mark,
                        f"found duplicate key '{key}'",
                        key_node.start_mark,
                    )
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


def read_document(content: Union[bytes, str], filename: str) -> RawNode:
    """Parse one YAML document.

    Args:
        content: Raw file content (bytes are decoded as UTF-8)
        filename: Logical path used in error messages

    Returns:
        The raw node tree. An empty document yields an empty mapping.

    Raises:
        MalformedDocument: On syntax errors, duplicate keys, undecodable
            bytes or a stream holding more than one document.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedDocument(filename, f"content is not valid UTF-8: {e}")

    try:
        data = yaml.load(content, Loader=_UniqueKeyLoader)
    except DuplicateKeyError as e:
        line, column = _mark_position(e)
        raise MalformedDocument(filename, str(e.problem), line, column, code=ErrorCode.DUPLICATE_NAME)
    except yaml.YAMLError as e:
        line, column = _mark_position(e)
        raise MalformedDocument(filename, _problem_text(e), line, column)

    if data is None:
        return {}
    return data


def _mark_position(error: yaml.YAMLError) -> tuple:
    mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
    if mark is None:
        return None, None
    return mark.line + 1, mark.column + 1


def _problem_text(error: yaml.YAMLError) -> str:
    problem = getattr(error, "problem", None)
    context = getattr(error, "context", None)
    if problem and context:
        return f"{context}, {problem}"
    if problem:
        return str(problem)
    return str(error).splitlines()[0] if str(error) else type(error).__name__

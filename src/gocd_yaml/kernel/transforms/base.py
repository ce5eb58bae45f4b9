"""Shared machinery for the per-entity transforms.

Forward transforms never raise on bad input. They report into a
TransformContext and return None for anything they had to reject, so one
malformed task does not hide the errors of its siblings.

Scalar attributes are declared once per entity kind as a tuple of
ScalarField rows. ``read_scalars`` (forward) and ``write_scalars`` (inverse)
walk the same rows with the same defaults, which is what keeps the two
directions in agreement.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from gocd_yaml.codes import ErrorCode
from gocd_yaml.contracts import PluginError


class TransformContext:
    """Error sink plus the dotted path of the node being transformed."""

    def __init__(
        self,
        location: str,
        path: Tuple[str, ...] = (),
        errors: Optional[List[PluginError]] = None,
    ):
        self.location = location
        self.path = path
        self.errors: List[PluginError] = errors if errors is not None else []

    def child(self, segment: Any) -> "TransformContext":
        """Context for a nested node; shares the error list."""
        if isinstance(segment, int):
            segment = f"[{segment}]"
        return TransformContext(self.location, self.path + (str(segment),), self.errors)

    @property
    def node_path(self) -> str:
        rendered = ""
        for segment in self.path:
            if segment.startswith("[") or not rendered:
                rendered += segment
            else:
                rendered += "." + segment
        return rendered or "(root)"

    def error(self, code: ErrorCode, message: str) -> None:
        self.errors.append(PluginError(
            message=f"{self.node_path}: {message}",
            location=self.location,
            code=code,
        ))

    def error_count(self) -> int:
        return len(self.errors)


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "mapping"
    if isinstance(value, list):
        return "sequence"
    return type(value).__name__


def expect_mapping(node: Any, ctx: TransformContext, what: str) -> Optional[Dict[str, Any]]:
    if isinstance(node, dict):
        return node
    ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"{what} must be a mapping, got {type_name(node)}")
    return None


def expect_sequence(node: Any, ctx: TransformContext, what: str) -> Optional[List[Any]]:
    if isinstance(node, list):
        return node
    ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"{what} must be a sequence, got {type_name(node)}")
    return None


def check_keys(
    mapping: Dict[str, Any],
    ctx: TransformContext,
    allowed: Iterable[str],
    required: Iterable[str] = (),
) -> bool:
    """Report unknown and missing keys. Returns True when the shape is clean."""
    allowed_set = set(allowed)
    ok = True
    for key in mapping:
        if key not in allowed_set:
            ctx.error(ErrorCode.UNKNOWN_FIELD, f"unknown field '{key}'")
            ok = False
    for key in required:
        if key not in mapping or mapping[key] is None:
            ctx.error(ErrorCode.MISSING_REQUIRED_FIELD, f"missing required field '{key}'")
            ok = False
    return ok


def single_entry(node: Any, ctx: TransformContext, what: str) -> Optional[Tuple[str, Any]]:
    """Unpack a ``- key: value`` sequence item."""
    if not isinstance(node, dict) or len(node) != 1:
        ctx.error(
            ErrorCode.INVALID_FIELD_VALUE,
            f"{what} must be a mapping with exactly one key, got {type_name(node)}"
            + (f" with {len(node)} keys" if isinstance(node, dict) else ""),
        )
        return None
    key, value = next(iter(node.items()))
    if not isinstance(key, str) or not key:
        ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"{what} name must be a non-empty string")
        return None
    return key, value


def report_duplicates(names: Sequence[str], ctx: TransformContext, what: str) -> bool:
    """DUPLICATE_NAME for any repeated name. Returns True when all are unique."""
    seen = set()
    reported = set()
    for name in names:
        if name in seen and name not in reported:
            ctx.error(ErrorCode.DUPLICATE_NAME, f"duplicate {what} name '{name}'")
            reported.add(name)
        seen.add(name)
    return not reported


def scalar_to_str(value: Any) -> Optional[str]:
    """Stringify a YAML scalar the way the dialect allows (numbers, booleans)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


# --- Scalar field tables ---------------------------------------------------

def _as_str(value: Any) -> Tuple[bool, Any]:
    text = scalar_to_str(value)
    return text is not None, text


def _as_bool(value: Any) -> Tuple[bool, Any]:
    if isinstance(value, bool):
        return True, value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return True, value.lower() == "true"
    return False, None


def _as_int(value: Any) -> Tuple[bool, Any]:
    if isinstance(value, bool):
        return False, None
    if isinstance(value, int):
        return True, value
    if not isinstance(value, str):
        return False, None
    try:
        return True, int(value)
    except ValueError:
        return False, None


_CONVERTERS: Dict[str, Callable[[Any], Tuple[bool, Any]]] = {
    "str": _as_str,
    "bool": _as_bool,
    "int": _as_int,
}


@dataclass(frozen=True)
class ScalarField:
    """One scalar attribute: dialect key, record attribute, kind, default."""
    key: str
    attr: str
    kind: str = "str"
    default: Any = None
    required: bool = False
    choices: Optional[Tuple[str, ...]] = None


def field_keys(fields: Sequence[ScalarField]) -> Tuple[str, ...]:
    return tuple(f.key for f in fields)


def read_scalars(
    mapping: Dict[str, Any],
    fields: Sequence[ScalarField],
    ctx: TransformContext,
) -> Optional[Dict[str, Any]]:
    """Forward: read declared scalar keys, applying defaults.

    Returns attr -> value, or None if any value was rejected.
    """
    values: Dict[str, Any] = {}
    ok = True
    for row in fields:
        raw = mapping.get(row.key)
        if raw is None:
            if row.required:
                ctx.error(ErrorCode.MISSING_REQUIRED_FIELD, f"missing required field '{row.key}'")
                ok = False
            values[row.attr] = row.default
            continue
        converted, value = _CONVERTERS[row.kind](raw)
        if not converted:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"field '{row.key}' must be a {row.kind}, got {type_name(raw)}",
            )
            ok = False
            continue
        if row.kind == "str" and row.required and not value:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"field '{row.key}' must not be empty")
            ok = False
            continue
        if row.choices is not None and value not in row.choices:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"field '{row.key}' must be one of {', '.join(row.choices)}; got '{value}'",
            )
            ok = False
            continue
        values[row.attr] = value
    return values if ok else None


def write_scalars(entity: Any, fields: Sequence[ScalarField]) -> Dict[str, Any]:
    """Inverse: emit declared scalar keys, skipping values equal to the default."""
    out: Dict[str, Any] = {}
    for row in fields:
        value = getattr(entity, row.attr)
        if value is None or (value == row.default and not row.required):
            continue
        out[row.key] = value
    return out


def read_str_list(
    mapping: Dict[str, Any],
    key: str,
    ctx: TransformContext,
) -> Optional[List[str]]:
    """Read an optional sequence of scalars as strings (absent -> [])."""
    raw = mapping.get(key)
    if raw is None:
        return []
    items = expect_sequence(raw, ctx.child(key), f"field '{key}'")
    if items is None:
        return None
    values: List[str] = []
    ok = True
    for index, item in enumerate(items):
        text = scalar_to_str(item)
        if text is None:
            ctx.child(key).child(index).error(
                ErrorCode.INVALID_FIELD_VALUE, f"expected a scalar, got {type_name(item)}"
            )
            ok = False
            continue
        values.append(text)
    return values if ok else None


def read_str_map(
    mapping: Dict[str, Any],
    key: str,
    ctx: TransformContext,
) -> Optional[List[Tuple[str, str]]]:
    """Read an optional ``{name: scalar}`` mapping as ordered pairs (absent -> [])."""
    raw = mapping.get(key)
    if raw is None:
        return []
    entries = expect_mapping(raw, ctx.child(key), f"field '{key}'")
    if entries is None:
        return None
    pairs: List[Tuple[str, str]] = []
    ok = True
    for name, value in entries.items():
        if value is None:
            value = ""
        text = scalar_to_str(value)
        if not isinstance(name, str) or not name or text is None:
            ctx.child(key).child(str(name)).error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"expected a name with a scalar value, got {type_name(value)}",
            )
            ok = False
            continue
        pairs.append((name, text))
    return pairs if ok else None


def build_record(model: Any, values: Dict[str, Any], ctx: TransformContext) -> Any:
    """Construct a record from already-checked values.

    The forward checks cover what the record validators enforce; a
    ValidationError here still becomes a reported error, never an exception.
    """
    try:
        return model(**values)
    except ValidationError as e:
        for detail in e.errors():
            where = ".".join(str(part) for part in detail.get("loc", ()))
            message = detail.get("msg", "invalid value")
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"{where}: {message}" if where else message)
        return None

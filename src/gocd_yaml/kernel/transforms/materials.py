"""Pipeline materials.

A material's kind comes from an explicit ``type:`` key or from a shorthand
key carrying its primary attribute::

    materials:
      app:                       # shorthand, kind git
        git: https://example.org/app.git
        branch: main
      lib:                       # long form
        type: hg
        url: https://example.org/lib
      upstream:
        pipeline: build-lib      # dependency
        stage: package
      docs:                      # no kind at all: git
        url: https://example.org/docs.git

Precedence when both forms appear: the long form wins. ``type:`` fixes the
kind, and an explicit primary attribute (``url``, ``port``, ...) overrides
the shorthand value. A shorthand key for another kind is then simply an
unknown field for the chosen kind.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, get_args

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import (
    DependencyMaterial,
    Filter,
    GitMaterial,
    HgMaterial,
    Material,
    P4Material,
    PackageMaterial,
    PluginMaterial,
    SvnMaterial,
    TfsMaterial,
)
from gocd_yaml.kernel.transforms.base import (
    ScalarField,
    TransformContext,
    build_record,
    check_keys,
    expect_mapping,
    field_keys,
    read_scalars,
    read_str_list,
    write_scalars,
)

DEFAULT_KIND = "git"

_SCM_COMMON = (
    ScalarField("destination", "destination"),
    ScalarField("auto_update", "auto_update", kind="bool", default=True),
    ScalarField("username", "username"),
    ScalarField("encrypted_password", "encrypted_password"),
)
FILTER_KEYS = ("ignore", "includes")


@dataclass(frozen=True)
class MaterialKind:
    """Dialect description of one material kind."""
    model: Any
    shorthand: str            # shorthand key, e.g. "git" or "pipeline"
    primary: ScalarField      # attribute the shorthand value fills in
    fields: Tuple[ScalarField, ...]
    filterable: bool = False


KINDS: Dict[str, MaterialKind] = {
    "git": MaterialKind(
        GitMaterial, "git", ScalarField("url", "url", required=True),
        (
            ScalarField("branch", "branch"),
            ScalarField("shallow_clone", "shallow_clone", kind="bool", default=False),
        ) + _SCM_COMMON,
        filterable=True,
    ),
    "hg": MaterialKind(
        HgMaterial, "hg", ScalarField("url", "url", required=True),
        (ScalarField("branch", "branch"),) + _SCM_COMMON,
        filterable=True,
    ),
    "svn": MaterialKind(
        SvnMaterial, "svn", ScalarField("url", "url", required=True),
        (ScalarField("check_externals", "check_externals", kind="bool", default=False),) + _SCM_COMMON,
        filterable=True,
    ),
    "p4": MaterialKind(
        P4Material, "p4", ScalarField("port", "port", required=True),
        (
            ScalarField("view", "view", required=True),
            ScalarField("use_tickets", "use_tickets", kind="bool", default=False),
        ) + _SCM_COMMON,
        filterable=True,
    ),
    "tfs": MaterialKind(
        TfsMaterial, "tfs", ScalarField("url", "url", required=True),
        (
            ScalarField("project", "project", required=True),
            ScalarField("domain", "domain"),
        ) + _SCM_COMMON,
        filterable=True,
    ),
    "dependency": MaterialKind(
        DependencyMaterial, "pipeline", ScalarField("pipeline", "pipeline", required=True),
        (
            ScalarField("stage", "stage", required=True),
            ScalarField("ignore_for_scheduling", "ignore_for_scheduling", kind="bool", default=False),
        ),
    ),
    "package": MaterialKind(
        PackageMaterial, "package", ScalarField("package_id", "package_id", required=True),
        (),
    ),
    "plugin": MaterialKind(
        PluginMaterial, "scm", ScalarField("scm_id", "scm_id", required=True),
        (ScalarField("destination", "destination"),),
        filterable=True,
    ),
}

SHORTHANDS = {kind.shorthand: name for name, kind in KINDS.items()}

_UNION_KINDS = {get_args(model.model_fields["type"].annotation)[0] for model in get_args(get_args(Material)[0])}
if set(KINDS) != _UNION_KINDS:
    raise RuntimeError("material kind table is out of sync with the Material union")


class MaterialTransform:

    def transform(self, name: str, node: Any, ctx: TransformContext) -> Optional[Material]:
        mapping = expect_mapping(node, ctx, "material")
        if mapping is None:
            return None
        kind_name = self._resolve_kind(mapping, ctx)
        if kind_name is None:
            return None
        kind = KINDS[kind_name]

        allowed = ("type", kind.shorthand, kind.primary.key) + field_keys(kind.fields)
        if kind.filterable:
            allowed += FILTER_KEYS
        shape_ok = check_keys(mapping, ctx, allowed)

        values = read_scalars(mapping, kind.fields, ctx)
        primary = self._primary_value(mapping, kind, ctx)
        material_filter = self._filter(mapping, ctx) if kind.filterable else None
        if not shape_ok or values is None or primary is None or material_filter is False:
            return None

        values[kind.primary.attr] = primary
        if kind.filterable:
            values["filter"] = material_filter
        return build_record(kind.model, dict(values, name=name, type=kind_name), ctx)

    def inverse_transform(self, material: Material) -> Dict[str, Any]:
        """Shorthand form: ``{<kind key>: <primary>, ...}``."""
        kind = KINDS[material.type]
        out: Dict[str, Any] = {kind.shorthand: getattr(material, kind.primary.attr)}
        out.update(write_scalars(material, kind.fields))
        material_filter = getattr(material, "filter", None)
        if material_filter is not None:
            if material_filter.ignore:
                out["ignore"] = list(material_filter.ignore)
            if material_filter.includes:
                out["includes"] = list(material_filter.includes)
        return out

    def _resolve_kind(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[str]:
        explicit = mapping.get("type")
        if explicit is not None:
            if not isinstance(explicit, str) or explicit not in KINDS:
                ctx.error(
                    ErrorCode.INVALID_FIELD_VALUE,
                    f"material type must be one of {', '.join(KINDS)}; got '{explicit}'",
                )
                return None
            return explicit

        found = [key for key in mapping if key in SHORTHANDS]
        if len(found) > 1:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"material declares several kinds: {', '.join(found)}",
            )
            return None
        if found:
            return SHORTHANDS[found[0]]
        return DEFAULT_KIND

    def _primary_value(self, mapping: Dict[str, Any], kind: MaterialKind, ctx: TransformContext) -> Optional[str]:
        long_key = kind.primary.key
        if mapping.get(long_key) is not None:
            source = {long_key: mapping[long_key]}
        elif long_key != kind.shorthand and mapping.get(kind.shorthand) is not None:
            source = {long_key: mapping[kind.shorthand]}
        else:
            source = {}
        values = read_scalars(source, (kind.primary,), ctx)
        if values is None:
            return None
        return values[kind.primary.attr]

    def _filter(self, mapping: Dict[str, Any], ctx: TransformContext):
        """Filter record, None when absent, False when rejected."""
        ignore = read_str_list(mapping, "ignore", ctx)
        includes = read_str_list(mapping, "includes", ctx)
        if ignore is None or includes is None:
            return False
        if ignore and includes:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, "fields 'ignore' and 'includes' are mutually exclusive")
            return False
        if not ignore and not includes:
            return None
        return Filter(ignore=ignore, includes=includes)

"""Pipelines.

Dialect::

    pipelines:
      app:
        group: web
        label_template: "${COUNT}"
        lock_behavior: unlockWhenFinished
        display_order: 2
        timer: {spec: "0 0 22 ? * MON-FRI", only_on_changes: true}
        materials:
          app: {git: https://example.org/app.git}
        stages:
          - test: {jobs: {unit: {tasks: [make test]}}}

A pipeline has either ``stages`` or a ``template`` reference, never both.
"""

from typing import Any, Dict, List, Optional, Sequence

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import Material, Pipeline, Timer, TrackingTool
from gocd_yaml.kernel.transforms.base import (
    ScalarField,
    TransformContext,
    build_record,
    check_keys,
    expect_mapping,
    field_keys,
    read_scalars,
    write_scalars,
)
from gocd_yaml.kernel.transforms.materials import MaterialTransform
from gocd_yaml.kernel.transforms.stages import StageTransform
from gocd_yaml.kernel.transforms.variables import (
    PARAMETERS_KEY,
    VARIABLE_KEYS,
    EnvironmentVariablesTransform,
    ParametersTransform,
)

LOCK_BEHAVIORS = ("none", "lockOnFailure", "unlockWhenFinished")

FIELDS = (
    ScalarField("group", "group"),
    ScalarField("label_template", "label_template"),
    ScalarField("lock_behavior", "lock_behavior", choices=LOCK_BEHAVIORS),
    ScalarField("display_order", "display_order_weight", kind="int", default=-1),
    ScalarField("template", "template"),
)
TIMER_FIELDS = (
    ScalarField("spec", "spec", required=True),
    ScalarField("only_on_changes", "only_on_changes", kind="bool", default=False),
)
TRACKING_TOOL_FIELDS = (
    ScalarField("link", "link", required=True),
    ScalarField("regex", "regex", required=True),
)
OTHER_KEYS = ("materials", "stages", "timer", "tracking_tool", PARAMETERS_KEY)


class PipelineTransform:

    def __init__(self):
        self.materials = MaterialTransform()
        self.stages = StageTransform()
        self.variables = EnvironmentVariablesTransform()
        self.parameters = ParametersTransform()

    def transform(self, name: str, node: Any, ctx: TransformContext) -> Optional[Pipeline]:
        mapping = expect_mapping(node, ctx, "pipeline")
        if mapping is None:
            return None
        shape_ok = check_keys(
            mapping, ctx, field_keys(FIELDS) + OTHER_KEYS + VARIABLE_KEYS, required=("materials",)
        )

        values = read_scalars(mapping, FIELDS, ctx)
        parameters = self.parameters.transform(mapping, ctx)
        variables = self.variables.transform(mapping, ctx)
        materials = self._materials(mapping, ctx)
        timer = self._optional_block(mapping, "timer", Timer, TIMER_FIELDS, ctx)
        tracking_tool = self._optional_block(mapping, "tracking_tool", TrackingTool, TRACKING_TOOL_FIELDS, ctx)

        has_stages = mapping.get("stages") is not None
        has_template = mapping.get("template") is not None
        stages: Optional[list] = []
        if has_stages and has_template:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, "fields 'stages' and 'template' are mutually exclusive")
            stages = None
        elif not has_stages and not has_template:
            ctx.error(ErrorCode.MISSING_REQUIRED_FIELD, "missing required field 'stages' (or 'template')")
            stages = None
        elif has_stages:
            stages = self.stages.transform_all(mapping["stages"], ctx.child("stages"))

        parts = (values, parameters, variables, materials, timer, tracking_tool, stages)
        if not shape_ok or any(part is None or part is False for part in parts):
            return None
        return build_record(
            Pipeline,
            dict(
                values,
                name=name,
                parameters=parameters,
                environment_variables=variables,
                materials=materials,
                stages=stages,
                timer=timer or None,
                tracking_tool=tracking_tool or None,
                location=ctx.location,
            ),
            ctx,
        )

    def inverse_transform(self, pipeline: Pipeline) -> Dict[str, Any]:
        """Dialect body of one pipeline (without its name key)."""
        out = write_scalars(pipeline, FIELDS[:4])
        out.update(self.parameters.inverse_transform(pipeline.parameters))
        out.update(self.variables.inverse_transform(pipeline.environment_variables))
        if pipeline.timer is not None:
            out["timer"] = write_scalars(pipeline.timer, TIMER_FIELDS)
        if pipeline.tracking_tool is not None:
            out["tracking_tool"] = write_scalars(pipeline.tracking_tool, TRACKING_TOOL_FIELDS)
        names = material_names(pipeline.materials)
        out["materials"] = {
            name: self.materials.inverse_transform(material)
            for name, material in zip(names, pipeline.materials)
        }
        if pipeline.template is not None:
            out["template"] = pipeline.template
        else:
            out["stages"] = [self.stages.inverse_transform(stage) for stage in pipeline.stages]
        return out

    def _materials(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[Material]]:
        raw = mapping.get("materials")
        if raw is None:
            return None  # already reported as missing
        materials_ctx = ctx.child("materials")
        entries = expect_mapping(raw, materials_ctx, "field 'materials'")
        if entries is None:
            return None
        if not entries:
            materials_ctx.error(ErrorCode.INVALID_FIELD_VALUE, "pipeline needs at least one material")
            return None
        materials: List[Material] = []
        ok = True
        for name, body in entries.items():
            if not isinstance(name, str) or not name:
                materials_ctx.error(
                    ErrorCode.INVALID_FIELD_VALUE, f"material name must be a non-empty string, got '{name}'"
                )
                ok = False
                continue
            material = self.materials.transform(name, body, materials_ctx.child(name))
            if material is None:
                ok = False
            else:
                materials.append(material)
        return materials if ok else None

    def _optional_block(self, mapping, key, model, fields, ctx):
        """Small nested record; {} when absent, False when rejected."""
        raw = mapping.get(key)
        if raw is None:
            return {}
        block_ctx = ctx.child(key)
        block = expect_mapping(raw, block_ctx, f"field '{key}'")
        if block is None:
            return False
        shape_ok = check_keys(block, block_ctx, field_keys(fields))
        values = read_scalars(block, fields, block_ctx)
        if not shape_ok or values is None:
            return False
        record = build_record(model, values, block_ctx)
        return record if record is not None else False


def material_names(materials: Sequence[Material]) -> List[str]:
    """Dialect keys for a material list.

    Unnamed materials are named after their upstream pipeline (dependency)
    or ``<type>_<n>``. A ``_<k>`` suffix keeps a generated name clear of
    every other name in the list; explicit names are returned as they are.
    """
    taken = {material.name for material in materials if material.name}
    names: List[str] = []
    for index, material in enumerate(materials):
        if material.name:
            names.append(material.name)
            continue
        base = material.pipeline if material.type == "dependency" else f"{material.type}_{index + 1}"
        name, suffix = base, 2
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1
        taken.add(name)
        names.append(name)
    return names

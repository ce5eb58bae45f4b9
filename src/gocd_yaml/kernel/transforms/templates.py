"""Pipeline templates: a named stage list."""

from typing import Any, Dict, Optional

from gocd_yaml.kernel.model import Template
from gocd_yaml.kernel.transforms.base import TransformContext, build_record, check_keys, expect_mapping
from gocd_yaml.kernel.transforms.stages import StageTransform


class TemplateTransform:

    def __init__(self):
        self.stages = StageTransform()

    def transform(self, name: str, node: Any, ctx: TransformContext) -> Optional[Template]:
        mapping = expect_mapping(node, ctx, "template")
        if mapping is None:
            return None
        shape_ok = check_keys(mapping, ctx, ("stages",), required=("stages",))
        if mapping.get("stages") is None:
            return None
        stages = self.stages.transform_all(mapping["stages"], ctx.child("stages"))
        if not shape_ok or stages is None:
            return None
        return build_record(Template, dict(name=name, stages=stages, location=ctx.location), ctx)

    def inverse_transform(self, template: Template) -> Dict[str, Any]:
        return {"stages": [self.stages.inverse_transform(stage) for stage in template.stages]}

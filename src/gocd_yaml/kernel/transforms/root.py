"""Document root: format version plus the three entity maps.

Dialect::

    format_version: 10
    common:                  # free-form, home for YAML anchors
      build_job: &build_job {tasks: [make]}
    pipelines: {...}
    environments: {...}
    templates: {...}
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import Environment, Pipeline, Template
from gocd_yaml.kernel.transforms.base import TransformContext, check_keys, expect_mapping, type_name
from gocd_yaml.kernel.transforms.environments import EnvironmentTransform
from gocd_yaml.kernel.transforms.pipelines import PipelineTransform
from gocd_yaml.kernel.transforms.templates import TemplateTransform

VERSION_KEY = "format_version"
ROOT_KEYS = (VERSION_KEY, "pipelines", "environments", "templates", "common")
SUPPORTED_VERSIONS = tuple(range(1, 11))
EXPORT_VERSION = SUPPORTED_VERSIONS[-1]


@dataclass
class PartialConfig:
    """Entities accepted from one file, plus the version it declared."""
    format_version: Optional[int] = None
    pipelines: List[Pipeline] = field(default_factory=list)
    environments: List[Environment] = field(default_factory=list)
    templates: List[Template] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.pipelines or self.environments or self.templates)


def parse_version(raw: Any) -> Optional[int]:
    """Integer or digit-string version, else None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class RootTransform:

    def __init__(self):
        self.pipelines = PipelineTransform()
        self.environments = EnvironmentTransform()
        self.templates = TemplateTransform()

    def transform(self, node: Any, ctx: TransformContext) -> PartialConfig:
        """Transform one document. Rejected entities are simply absent."""
        config = PartialConfig()
        if node is None:
            return config
        mapping = expect_mapping(node, ctx, "document root")
        if mapping is None:
            return config
        check_keys(mapping, ctx, ROOT_KEYS)

        if mapping.get(VERSION_KEY) is not None:
            version = self._version(mapping[VERSION_KEY], ctx.child(VERSION_KEY))
            if version is None:
                return config
            config.format_version = version

        config.pipelines = self._named(mapping, "pipelines", self.pipelines.transform, ctx)
        config.environments = self._named(mapping, "environments", self.environments.transform, ctx)
        config.templates = self._named(mapping, "templates", self.templates.transform, ctx)
        return config

    def inverse_transform_pipeline(self, pipeline: Pipeline) -> Dict[str, Any]:
        """A complete single-pipeline document."""
        return {
            VERSION_KEY: EXPORT_VERSION,
            "pipelines": {pipeline.name: self.pipelines.inverse_transform(pipeline)},
        }

    def _version(self, raw: Any, ctx: TransformContext) -> Optional[int]:
        version = parse_version(raw)
        if version is None:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"format_version must be an integer, got {type_name(raw)}",
            )
            return None
        if version not in SUPPORTED_VERSIONS:
            ctx.error(
                ErrorCode.UNSUPPORTED_VERSION,
                f"format_version {version} is not supported; supported versions are "
                f"{SUPPORTED_VERSIONS[0]} to {SUPPORTED_VERSIONS[-1]}",
            )
            return None
        return version

    def _named(
        self,
        mapping: Dict[str, Any],
        key: str,
        transform: Callable[[str, Any, TransformContext], Any],
        ctx: TransformContext,
    ) -> List[Any]:
        raw = mapping.get(key)
        if raw is None:
            return []
        section_ctx = ctx.child(key)
        entries = expect_mapping(raw, section_ctx, f"field '{key}'")
        if entries is None:
            return []
        accepted = []
        for name, body in entries.items():
            if not isinstance(name, str) or not name:
                section_ctx.error(
                    ErrorCode.INVALID_FIELD_VALUE, f"name must be a non-empty string, got '{name}'"
                )
                continue
            entity = transform(name, body, section_ctx.child(name))
            if entity is not None:
                accepted.append(entity)
        return accepted

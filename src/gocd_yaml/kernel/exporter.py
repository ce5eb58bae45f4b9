"""Export one pipeline record as a standalone YAML document."""

import logging
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from gocd_yaml.codes import ErrorCode
from gocd_yaml.contracts import ExportResult, PluginError
from gocd_yaml.kernel.model import (
    ConfigurationProperty,
    EnvironmentVariable,
    ExternalArtifact,
    FetchTask,
    Pipeline,
    PluginTask,
    Task,
)
from gocd_yaml.kernel.transforms import RootTransform, TransformContext
from gocd_yaml.kernel.transforms.base import report_duplicates
from gocd_yaml.kernel.transforms.pipelines import material_names

logger = logging.getLogger(__name__)

EXPORT_SUFFIX = ".gocd.yaml"


class ExportError(ValueError):
    """Raised when a pipeline cannot be exported as a valid document."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[PluginError]] = None,
        code: ErrorCode = ErrorCode.INVALID_FIELD_VALUE,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.code = code
        super().__init__(message)


class _ExportDumper(yaml.SafeDumper):
    """Block-style dumper that indents sequences under their parent key."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def coerce_pipeline(pipeline: Union[Pipeline, Dict[str, Any]]) -> Pipeline:
    if isinstance(pipeline, Pipeline):
        return pipeline
    if not isinstance(pipeline, dict):
        raise ExportError(f"expected a pipeline record or mapping, got {type(pipeline).__name__}")
    try:
        return Pipeline.model_validate(pipeline)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ExportError(f"invalid pipeline: {details}")


def dump_yaml(document: Dict[str, Any]) -> str:
    return yaml.dump(
        document,
        Dumper=_ExportDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def _check_variables(variables: List[EnvironmentVariable], ctx: TransformContext) -> None:
    report_duplicates([v.name for v in variables], ctx, "environment variable")


def _check_properties(properties: List[ConfigurationProperty], ctx: TransformContext) -> None:
    # plain and secure keys land in separate maps
    report_duplicates([p.key for p in properties if p.encrypted_value is None], ctx, "option")
    report_duplicates([p.key for p in properties if p.encrypted_value is not None], ctx, "secure option")


def _check_task(task: Task, ctx: TransformContext) -> None:
    if isinstance(task, (FetchTask, PluginTask)):
        _check_properties(task.configuration, ctx)
    if task.on_cancel is not None:
        _check_task(task.on_cancel, ctx.child("on_cancel"))


def check_names(record: Pipeline, materials: List[str], ctx: TransformContext) -> None:
    """Report every name the dialect keys by that appears twice under one parent.

    ``materials`` are the names the materials will be written under.
    """
    report_duplicates(materials, ctx.child("materials"), "material")
    report_duplicates([p.name for p in record.parameters], ctx.child("parameters"), "parameter")
    _check_variables(record.environment_variables, ctx)
    report_duplicates([s.name for s in record.stages], ctx.child("stages"), "stage")
    for stage in record.stages:
        stage_ctx = ctx.child("stages").child(stage.name)
        _check_variables(stage.environment_variables, stage_ctx)
        report_duplicates([j.name for j in stage.jobs], stage_ctx.child("jobs"), "job")
        for job in stage.jobs:
            job_ctx = stage_ctx.child("jobs").child(job.name)
            _check_variables(job.environment_variables, job_ctx)
            report_duplicates([t.name for t in job.tabs], job_ctx.child("tabs"), "tab")
            for index, artifact in enumerate(job.artifacts):
                if isinstance(artifact, ExternalArtifact):
                    _check_properties(artifact.configuration, job_ctx.child("artifacts").child(index))
            for index, task in enumerate(job.tasks):
                _check_task(task, job_ctx.child("tasks").child(index))


def _comparable(node: Any) -> Any:
    """JSON form with what the dialect cannot express folded away.

    Variables and options read back plain first, then secure; an empty
    filter reads back as no filter.
    """
    if isinstance(node, list):
        items = [_comparable(item) for item in node]
        if items and all(isinstance(item, dict) and "encrypted_value" in item for item in items):
            items.sort(key=lambda item: item["encrypted_value"] is not None)
        return items
    if isinstance(node, dict):
        out = {key: _comparable(value) for key, value in node.items()}
        if out.get("filter") == {"ignore": [], "includes": []}:
            out["filter"] = None
        return out
    return node


def export_pipeline(pipeline: Union[Pipeline, Dict[str, Any]]) -> ExportResult:
    """Render a pipeline in the dialect.

    Key order comes from the inverse transforms, so equal pipelines always
    render to identical text.

    Raises:
        ExportError: The record is invalid, two siblings share a name, or
            the rendered document would not read back as the same pipeline.
    """
    record = coerce_pipeline(pipeline)
    filename = record.name + EXPORT_SUFFIX
    names = material_names(record.materials)

    ctx = TransformContext(filename)
    check_names(record, names, ctx.child("pipelines").child(record.name))
    if ctx.errors:
        logger.error("Export of pipeline %s has duplicate names: %s", record.name, ctx.errors)
        raise ExportError(
            f"pipeline '{record.name}' cannot be exported: "
            + "; ".join(error.message for error in ctx.errors),
            errors=ctx.errors,
            code=ErrorCode.DUPLICATE_NAME,
        )

    transform = RootTransform()
    document = transform.inverse_transform_pipeline(record)
    text = dump_yaml(document)

    # the rendered text must read back as the same pipeline
    ctx = TransformContext(filename)
    config = transform.transform(yaml.safe_load(text), ctx)
    if ctx.errors or len(config.pipelines) != 1:
        logger.error("Export of pipeline %s does not read back: %s", record.name, ctx.errors)
        raise ExportError(
            f"pipeline '{record.name}' cannot be exported: "
            + "; ".join(error.message for error in ctx.errors),
            errors=ctx.errors,
        )
    expected = record.model_copy(update={
        "materials": [m.model_copy(update={"name": n}) for m, n in zip(record.materials, names)],
        "location": None,
    })
    actual = config.pipelines[0].model_copy(update={"location": None})
    if _comparable(expected.model_dump(mode="json")) != _comparable(actual.model_dump(mode="json")):
        logger.error("Export of pipeline %s reads back as a different pipeline", record.name)
        raise ExportError(f"pipeline '{record.name}' cannot be exported without losing configuration")

    logger.debug("Exported pipeline %s (%d bytes)", record.name, len(text))
    return ExportResult(pipeline=text, filename=filename)

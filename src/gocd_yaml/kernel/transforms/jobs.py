"""Jobs, their artifacts and tabs.

Dialect::

    jobs:
      unit:
        timeout: 20
        run_instances: all
        resources: [linux, docker]
        tabs: {coverage: coverage/index.html}
        artifacts:
          - build: {source: dist/, destination: pkg}
          - test: {source: reports/}
          - external:
              id: image
              store_id: registry
              configuration: {options: {Image: app}}
        tasks:
          - make test
"""

from typing import Any, Dict, List, Optional

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import Artifact, BuiltinArtifact, ExternalArtifact, Job, Tab
from gocd_yaml.kernel.transforms.base import (
    ScalarField,
    TransformContext,
    build_record,
    check_keys,
    expect_mapping,
    expect_sequence,
    field_keys,
    read_scalars,
    read_str_list,
    read_str_map,
    single_entry,
    write_scalars,
)
from gocd_yaml.kernel.transforms.tasks import TaskTransform, read_configuration_block, write_options
from gocd_yaml.kernel.transforms.variables import VARIABLE_KEYS, EnvironmentVariablesTransform

FIELDS = (
    ScalarField("timeout", "timeout", kind="int"),
    ScalarField("elastic_profile_id", "elastic_profile_id"),
)
RUN_INSTANCES_KEY = "run_instances"
LIST_KEYS = ("resources", "tabs", "artifacts", "tasks", RUN_INSTANCES_KEY)

BUILTIN_ARTIFACT_FIELDS = (
    ScalarField("source", "source", required=True),
    ScalarField("destination", "destination"),
)
EXTERNAL_ARTIFACT_FIELDS = (
    ScalarField("id", "id", required=True),
    ScalarField("store_id", "store_id", required=True),
)
ARTIFACT_KINDS = ("build", "test", "external")


class ArtifactTransform:

    def transform(self, node: Any, ctx: TransformContext) -> Optional[Artifact]:
        entry = single_entry(node, ctx, "artifact")
        if entry is None:
            return None
        kind, body = entry
        if kind not in ARTIFACT_KINDS:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"unknown artifact kind '{kind}'; expected one of {', '.join(ARTIFACT_KINDS)}",
            )
            return None
        kind_ctx = ctx.child(kind)
        mapping = expect_mapping(body, kind_ctx, f"{kind} artifact")
        if mapping is None:
            return None

        if kind == "external":
            shape_ok = check_keys(mapping, kind_ctx, field_keys(EXTERNAL_ARTIFACT_FIELDS) + ("configuration",))
            values = read_scalars(mapping, EXTERNAL_ARTIFACT_FIELDS, kind_ctx)
            configuration = read_configuration_block(mapping, kind_ctx)
            if not shape_ok or values is None or configuration is None:
                return None
            return build_record(
                ExternalArtifact, dict(values, configuration=configuration, type=kind), kind_ctx
            )

        shape_ok = check_keys(mapping, kind_ctx, field_keys(BUILTIN_ARTIFACT_FIELDS))
        values = read_scalars(mapping, BUILTIN_ARTIFACT_FIELDS, kind_ctx)
        if not shape_ok or values is None:
            return None
        return build_record(BuiltinArtifact, dict(values, type=kind), kind_ctx)

    def inverse_transform(self, artifact: Artifact) -> Dict[str, Any]:
        if isinstance(artifact, ExternalArtifact):
            body = write_scalars(artifact, EXTERNAL_ARTIFACT_FIELDS)
            if artifact.configuration:
                body["configuration"] = write_options(artifact.configuration)
            return {artifact.type: body}
        return {artifact.type: write_scalars(artifact, BUILTIN_ARTIFACT_FIELDS)}


class JobTransform:

    def __init__(self):
        self.tasks = TaskTransform()
        self.artifacts = ArtifactTransform()
        self.variables = EnvironmentVariablesTransform()

    def transform(self, name: str, node: Any, ctx: TransformContext) -> Optional[Job]:
        mapping = expect_mapping(node, ctx, "job")
        if mapping is None:
            return None
        shape_ok = check_keys(
            mapping, ctx, field_keys(FIELDS) + LIST_KEYS + VARIABLE_KEYS, required=("tasks",)
        )

        values = read_scalars(mapping, FIELDS, ctx)
        run_instances = self._run_instances(mapping, ctx)
        resources = read_str_list(mapping, "resources", ctx)
        tabs = self._tabs(mapping, ctx)
        artifacts = self._artifacts(mapping, ctx)
        variables = self.variables.transform(mapping, ctx)
        tasks = self._tasks(mapping, ctx)

        if values is not None and values["timeout"] is not None and values["timeout"] < 0:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, "field 'timeout' must not be negative")
            values = None
        exclusive_ok = True
        if resources and mapping.get("elastic_profile_id") is not None:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                "fields 'resources' and 'elastic_profile_id' are mutually exclusive",
            )
            exclusive_ok = False

        parts = (values, run_instances, resources, tabs, artifacts, variables, tasks)
        if not shape_ok or not exclusive_ok or any(part is None for part in parts):
            return None
        return build_record(
            Job,
            dict(
                values,
                name=name,
                run_instance_count=run_instances or None,
                resources=resources,
                tabs=tabs,
                artifacts=artifacts,
                environment_variables=variables,
                tasks=tasks,
            ),
            ctx,
        )

    def inverse_transform(self, job: Job) -> Dict[str, Any]:
        out = write_scalars(job, FIELDS[:1])
        if job.run_instance_count is not None:
            out[RUN_INSTANCES_KEY] = job.run_instance_count
        if job.resources:
            out["resources"] = list(job.resources)
        out.update(write_scalars(job, FIELDS[1:]))
        out.update(self.variables.inverse_transform(job.environment_variables))
        if job.tabs:
            out["tabs"] = {tab.name: tab.path for tab in job.tabs}
        if job.artifacts:
            out["artifacts"] = [self.artifacts.inverse_transform(a) for a in job.artifacts]
        out["tasks"] = [self.tasks.inverse_transform(t) for t in job.tasks]
        return out

    # run_instances: absent -> 0 sentinel (no value), int >= 1, or "all"
    def _run_instances(self, mapping: Dict[str, Any], ctx: TransformContext):
        raw = mapping.get(RUN_INSTANCES_KEY)
        if raw is None:
            return 0
        if raw == "all":
            return "all"
        values = read_scalars({RUN_INSTANCES_KEY: raw}, (ScalarField(RUN_INSTANCES_KEY, "count", kind="int"),), ctx)
        if values is None:
            return None
        if values["count"] < 1:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"field '{RUN_INSTANCES_KEY}' must be at least 1 or 'all'")
            return None
        return values["count"]

    def _tabs(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[Tab]]:
        pairs = read_str_map(mapping, "tabs", ctx)
        if pairs is None:
            return None
        tabs: List[Tab] = []
        for tab_name, path in pairs:
            if not path:
                ctx.child("tabs").child(tab_name).error(ErrorCode.INVALID_FIELD_VALUE, "tab path must not be empty")
                return None
            tabs.append(Tab(name=tab_name, path=path))
        return tabs

    def _artifacts(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[Artifact]]:
        raw = mapping.get("artifacts")
        if raw is None:
            return []
        artifacts_ctx = ctx.child("artifacts")
        items = expect_sequence(raw, artifacts_ctx, "field 'artifacts'")
        if items is None:
            return None
        artifacts: List[Artifact] = []
        ok = True
        for index, item in enumerate(items):
            artifact = self.artifacts.transform(item, artifacts_ctx.child(index))
            if artifact is None:
                ok = False
            else:
                artifacts.append(artifact)
        return artifacts if ok else None

    def _tasks(self, mapping: Dict[str, Any], ctx: TransformContext):
        raw = mapping.get("tasks")
        if raw is None:
            return None  # already reported as missing
        tasks_ctx = ctx.child("tasks")
        items = expect_sequence(raw, tasks_ctx, "field 'tasks'")
        if items is None:
            return None
        if not items:
            tasks_ctx.error(ErrorCode.INVALID_FIELD_VALUE, "job needs at least one task")
            return None
        return self.tasks.transform_all(items, tasks_ctx)

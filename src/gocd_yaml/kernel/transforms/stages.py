"""Stages.

Dialect::

    stages:
      - test:
          clean_workspace: true
          approval: manual
          jobs:
            unit:
              tasks: [make test]
"""

from typing import Any, Dict, List, Optional

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import Job, Stage
from gocd_yaml.kernel.transforms.approval import ApprovalTransform
from gocd_yaml.kernel.transforms.base import (
    ScalarField,
    TransformContext,
    build_record,
    check_keys,
    expect_mapping,
    expect_sequence,
    field_keys,
    read_scalars,
    report_duplicates,
    single_entry,
    write_scalars,
)
from gocd_yaml.kernel.transforms.jobs import JobTransform
from gocd_yaml.kernel.transforms.variables import VARIABLE_KEYS, EnvironmentVariablesTransform

FIELDS = (
    ScalarField("fetch_materials", "fetch_materials", kind="bool", default=True),
    ScalarField("keep_artifacts", "never_cleanup_artifacts", kind="bool", default=False),
    ScalarField("clean_workspace", "clean_working_directory", kind="bool", default=False),
)
OTHER_KEYS = ("approval", "jobs")


class StageTransform:

    def __init__(self):
        self.jobs = JobTransform()
        self.approval = ApprovalTransform()
        self.variables = EnvironmentVariablesTransform()

    def transform(self, node: Any, ctx: TransformContext) -> Optional[Stage]:
        """Transform one ``- name: {...}`` entry of a stage list."""
        entry = single_entry(node, ctx, "stage")
        if entry is None:
            return None
        name, body = entry
        stage_ctx = ctx.child(name)
        mapping = expect_mapping(body, stage_ctx, "stage")
        if mapping is None:
            return None

        shape_ok = check_keys(
            mapping, stage_ctx, field_keys(FIELDS) + OTHER_KEYS + VARIABLE_KEYS, required=("jobs",)
        )
        values = read_scalars(mapping, FIELDS, stage_ctx)
        approval = self.approval.transform(mapping.get("approval"), stage_ctx.child("approval"))
        variables = self.variables.transform(mapping, stage_ctx)
        jobs = self._jobs(mapping, stage_ctx)

        parts = (values, approval, variables, jobs)
        if not shape_ok or any(part is None for part in parts):
            return None
        return build_record(
            Stage,
            dict(values, name=name, approval=approval, environment_variables=variables, jobs=jobs),
            stage_ctx,
        )

    def transform_all(self, node: Any, ctx: TransformContext) -> Optional[List[Stage]]:
        """Transform a whole stage list; stage names must be unique."""
        items = expect_sequence(node, ctx, "field 'stages'")
        if items is None:
            return None
        if not items:
            ctx.error(ErrorCode.INVALID_FIELD_VALUE, "at least one stage is required")
            return None
        stages: List[Stage] = []
        ok = True
        for index, item in enumerate(items):
            stage = self.transform(item, ctx.child(index))
            if stage is None:
                ok = False
            else:
                stages.append(stage)
        if not report_duplicates([s.name for s in stages], ctx, "stage"):
            ok = False
        return stages if ok else None

    def inverse_transform(self, stage: Stage) -> Dict[str, Any]:
        body = write_scalars(stage, FIELDS)
        approval = self.approval.inverse_transform(stage.approval)
        if approval is not None:
            body["approval"] = approval
        body.update(self.variables.inverse_transform(stage.environment_variables))
        body["jobs"] = {job.name: self.jobs.inverse_transform(job) for job in stage.jobs}
        return {stage.name: body}

    def _jobs(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[Job]]:
        raw = mapping.get("jobs")
        if raw is None:
            return None  # already reported as missing
        jobs_ctx = ctx.child("jobs")
        entries = expect_mapping(raw, jobs_ctx, "field 'jobs'")
        if entries is None:
            return None
        if not entries:
            jobs_ctx.error(ErrorCode.INVALID_FIELD_VALUE, "stage needs at least one job")
            return None
        jobs: List[Job] = []
        ok = True
        for name, body in entries.items():
            if not isinstance(name, str) or not name:
                jobs_ctx.error(ErrorCode.INVALID_FIELD_VALUE, f"job name must be a non-empty string, got '{name}'")
                ok = False
                continue
            job = self.jobs.transform(name, body, jobs_ctx.child(name))
            if job is None:
                ok = False
            else:
                jobs.append(job)
        return jobs if ok else None

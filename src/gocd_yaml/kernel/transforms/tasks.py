"""Job tasks.

Each task is a one-key mapping naming its kind, or a bare string::

    tasks:
      - make test                      # exec shorthand
      - exec:
          command: make
          arguments: [package]
          run_if: passed
      - fetch:
          stage: build
          job: compile
          source: dist/
      - plugin:
          configuration: {id: script-executor, version: 1}
          options: {script: ./deploy.sh}

Every kind accepts ``run_if`` and ``on_cancel`` (itself a task).
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, get_args

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import (
    AntTask,
    ConfigurationProperty,
    ExecTask,
    FetchTask,
    NantTask,
    PluginConfiguration,
    PluginTask,
    RakeTask,
    Task,
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
    read_str_map,
    single_entry,
    write_scalars,
)

COMMON_FIELDS = (
    ScalarField("run_if", "run_if", default="passed", choices=("passed", "failed", "any")),
)
ON_CANCEL_KEY = "on_cancel"

EXEC_FIELDS = (
    ScalarField("command", "command", required=True),
    ScalarField("working_directory", "working_directory"),
)
FETCH_FIELDS = (
    ScalarField("artifact_origin", "artifact_origin", default="gocd", choices=("gocd", "external")),
    ScalarField("pipeline", "pipeline"),
    ScalarField("stage", "stage", required=True),
    ScalarField("job", "job", required=True),
    ScalarField("source", "source"),
    ScalarField("is_file", "is_source_a_file", kind="bool", default=False),
    ScalarField("destination", "destination"),
    ScalarField("artifact_id", "artifact_id"),
)
BUILD_FILE_FIELDS = (
    ScalarField("build_file", "build_file"),
    ScalarField("target", "target"),
    ScalarField("working_directory", "working_directory"),
)
NANT_FIELDS = BUILD_FILE_FIELDS + (ScalarField("nant_path", "nant_path"),)
PLUGIN_CONFIGURATION_FIELDS = (
    ScalarField("id", "id", required=True),
    ScalarField("version", "version", required=True),
)


def read_options(
    mapping: Dict[str, Any],
    ctx: TransformContext,
    plain_key: str = "options",
    secure_key: str = "secure_options",
) -> Optional[List[ConfigurationProperty]]:
    """``options`` / ``secure_options`` maps -> configuration properties."""
    plain = read_str_map(mapping, plain_key, ctx)
    secure = read_str_map(mapping, secure_key, ctx) if secure_key else []
    if plain is None or secure is None:
        return None
    properties = [ConfigurationProperty(key=k, value=v) for k, v in plain]
    properties.extend(ConfigurationProperty(key=k, encrypted_value=v) for k, v in secure)
    return properties


def read_configuration_block(
    mapping: Dict[str, Any], ctx: TransformContext
) -> Optional[List[ConfigurationProperty]]:
    """``configuration: {options: {..}, secure_options: {..}}`` (absent -> [])."""
    raw = mapping.get("configuration")
    if raw is None:
        return []
    config_ctx = ctx.child("configuration")
    config = expect_mapping(raw, config_ctx, "configuration")
    if config is None or not check_keys(config, config_ctx, ("options", "secure_options")):
        return None
    return read_options(config, config_ctx)


def write_options(
    properties: List[ConfigurationProperty],
    plain_key: str = "options",
    secure_key: str = "secure_options",
) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    plain = {p.key: p.value for p in properties if p.encrypted_value is None}
    secure = {p.key: p.encrypted_value for p in properties if p.encrypted_value is not None}
    if plain:
        out[plain_key] = plain
    if secure and secure_key:
        out[secure_key] = secure
    return out


class TaskTransform:
    """Forward/inverse for every task kind.

    ``_FORWARD`` and ``_INVERSE`` are keyed by the same kind names; a kind
    missing from either table fails the module-level check below.
    """

    def transform(self, node: Any, ctx: TransformContext) -> Optional[Task]:
        if isinstance(node, str):
            if not node.strip():
                ctx.error(ErrorCode.INVALID_FIELD_VALUE, "task command must not be empty")
                return None
            return ExecTask(type="exec", command=node)

        entry = single_entry(node, ctx, "task")
        if entry is None:
            return None
        kind, body = entry
        forward = self._FORWARD.get(kind)
        if forward is None:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"unknown task kind '{kind}'; expected one of {', '.join(TASK_KINDS)}",
            )
            return None
        kind_ctx = ctx.child(kind)
        if body is None:
            body = {}
        mapping = expect_mapping(body, kind_ctx, f"{kind} task")
        if mapping is None:
            return None
        return forward(self, mapping, kind_ctx)

    def transform_all(self, nodes: List[Any], ctx: TransformContext) -> Optional[List[Task]]:
        """Transform a task sequence; every task is checked even after a failure."""
        tasks: List[Task] = []
        ok = True
        for index, node in enumerate(nodes):
            task = self.transform(node, ctx.child(index))
            if task is None:
                ok = False
            else:
                tasks.append(task)
        return tasks if ok else None

    def inverse_transform(self, task: Task) -> Any:
        if _is_exec_shorthand(task):
            return task.command
        body = self._INVERSE[task.type](self, task)
        body.update(write_scalars(task, COMMON_FIELDS))
        if task.on_cancel is not None:
            body[ON_CANCEL_KEY] = self.inverse_transform(task.on_cancel)
        return {task.type: body}

    # --- shared ---------------------------------------------------------

    def _common(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[Dict[str, Any]]:
        values = read_scalars(mapping, COMMON_FIELDS, ctx)
        on_cancel = None
        cancel_ok = True
        if mapping.get(ON_CANCEL_KEY) is not None:
            on_cancel = self.transform(mapping[ON_CANCEL_KEY], ctx.child(ON_CANCEL_KEY))
            cancel_ok = on_cancel is not None
        if values is None or not cancel_ok:
            return None
        values["on_cancel"] = on_cancel
        return values

    def _allowed(self, fields: Tuple[ScalarField, ...], *extra: str) -> Tuple[str, ...]:
        return field_keys(fields) + field_keys(COMMON_FIELDS) + (ON_CANCEL_KEY,) + extra

    # --- exec -------------------------------------------------------------

    def _exec(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[ExecTask]:
        shape_ok = check_keys(mapping, ctx, self._allowed(EXEC_FIELDS, "arguments"))
        values = read_scalars(mapping, EXEC_FIELDS, ctx)
        arguments = read_str_list(mapping, "arguments", ctx)
        common = self._common(mapping, ctx)
        if not shape_ok or values is None or arguments is None or common is None:
            return None
        return build_record(ExecTask, dict(values, arguments=arguments, type="exec", **common), ctx)

    def _exec_inverse(self, task: ExecTask) -> Dict[str, Any]:
        out = write_scalars(task, EXEC_FIELDS)
        if task.arguments:
            out["arguments"] = list(task.arguments)
        return out

    # --- fetch ------------------------------------------------------------

    def _fetch(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[FetchTask]:
        shape_ok = check_keys(mapping, ctx, self._allowed(FETCH_FIELDS, "configuration"))
        values = read_scalars(mapping, FETCH_FIELDS, ctx)
        common = self._common(mapping, ctx)
        if not shape_ok or values is None or common is None:
            return None

        origin = values["artifact_origin"]
        if origin == "gocd":
            origin_ok = self._require(mapping, ctx, "source")
            origin_ok = self._forbid(mapping, ctx, ("artifact_id", "configuration"), origin) and origin_ok
            configuration: List[ConfigurationProperty] = []
        else:
            origin_ok = self._require(mapping, ctx, "artifact_id")
            origin_ok = self._forbid(mapping, ctx, ("source", "is_file", "destination"), origin) and origin_ok
            configuration = read_configuration_block(mapping, ctx)
        if not origin_ok or configuration is None:
            return None
        return build_record(
            FetchTask, dict(values, configuration=configuration, type="fetch", **common), ctx
        )

    def _fetch_inverse(self, task: FetchTask) -> Dict[str, Any]:
        out = write_scalars(task, FETCH_FIELDS)
        if task.configuration:
            out["configuration"] = write_options(task.configuration)
        return out

    @staticmethod
    def _require(mapping: Dict[str, Any], ctx: TransformContext, key: str) -> bool:
        if mapping.get(key) is None:
            ctx.error(ErrorCode.MISSING_REQUIRED_FIELD, f"missing required field '{key}'")
            return False
        return True

    @staticmethod
    def _forbid(mapping: Dict[str, Any], ctx: TransformContext, keys: Tuple[str, ...], origin: str) -> bool:
        present = [key for key in keys if key in mapping]
        for key in present:
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"field '{key}' is not allowed when artifact_origin is '{origin}'",
            )
        return not present

    # --- plugin -----------------------------------------------------------

    def _plugin(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[PluginTask]:
        shape_ok = check_keys(
            mapping,
            ctx,
            self._allowed((), "configuration", "options", "secure_options"),
            required=("configuration",),
        )
        plugin_configuration = None
        if mapping.get("configuration") is not None:
            plugin_configuration = self._plugin_configuration(mapping["configuration"], ctx.child("configuration"))
        options = read_options(mapping, ctx)
        common = self._common(mapping, ctx)
        if not shape_ok or plugin_configuration is None or options is None or common is None:
            return None
        return build_record(
            PluginTask,
            dict(plugin_configuration=plugin_configuration, configuration=options, type="plugin", **common),
            ctx,
        )

    def _plugin_configuration(self, node: Any, ctx: TransformContext) -> Optional[PluginConfiguration]:
        mapping = expect_mapping(node, ctx, "plugin configuration")
        if mapping is None:
            return None
        shape_ok = check_keys(mapping, ctx, field_keys(PLUGIN_CONFIGURATION_FIELDS))
        values = read_scalars(mapping, PLUGIN_CONFIGURATION_FIELDS, ctx)
        if not shape_ok or values is None:
            return None
        return build_record(PluginConfiguration, values, ctx)

    def _plugin_inverse(self, task: PluginTask) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "configuration": write_scalars(task.plugin_configuration, PLUGIN_CONFIGURATION_FIELDS)
        }
        out.update(write_options(task.configuration))
        return out

    _FORWARD: Dict[str, Callable] = {}
    _INVERSE: Dict[str, Callable] = {}


def _build_file_forward(model: Any, kind: str, fields: Tuple[ScalarField, ...]) -> Callable:
    """Forward transform shared by ant, nant and rake."""
    def forward(self: TaskTransform, mapping: Dict[str, Any], ctx: TransformContext):
        shape_ok = check_keys(mapping, ctx, self._allowed(fields))
        values = read_scalars(mapping, fields, ctx)
        common = self._common(mapping, ctx)
        if not shape_ok or values is None or common is None:
            return None
        return build_record(model, dict(values, type=kind, **common), ctx)
    return forward


def _build_file_inverse(fields: Tuple[ScalarField, ...]) -> Callable:
    def inverse(self: TaskTransform, task: Any) -> Dict[str, Any]:
        return write_scalars(task, fields)
    return inverse


TaskTransform._FORWARD = {
    "exec": TaskTransform._exec,
    "fetch": TaskTransform._fetch,
    "plugin": TaskTransform._plugin,
    "ant": _build_file_forward(AntTask, "ant", BUILD_FILE_FIELDS),
    "nant": _build_file_forward(NantTask, "nant", NANT_FIELDS),
    "rake": _build_file_forward(RakeTask, "rake", BUILD_FILE_FIELDS),
}
TaskTransform._INVERSE = {
    "exec": TaskTransform._exec_inverse,
    "fetch": TaskTransform._fetch_inverse,
    "plugin": TaskTransform._plugin_inverse,
    "ant": _build_file_inverse(BUILD_FILE_FIELDS),
    "nant": _build_file_inverse(NANT_FIELDS),
    "rake": _build_file_inverse(BUILD_FILE_FIELDS),
}

TASK_KINDS = tuple(TaskTransform._FORWARD)

_UNION_KINDS = {get_args(model.model_fields["type"].annotation)[0] for model in get_args(get_args(Task)[0])}
if not set(TASK_KINDS) == set(TaskTransform._INVERSE) == _UNION_KINDS:
    raise RuntimeError("task transform tables are out of sync with the Task union")


def _is_exec_shorthand(task: Task) -> bool:
    return (
        isinstance(task, ExecTask)
        and not task.arguments
        and task.working_directory is None
        and task.run_if == "passed"
        and task.on_cancel is None
    )

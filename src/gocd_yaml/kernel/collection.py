"""Configuration collection: the merged result of one parse request.

Files are added one at a time with ``add_file``. Nothing a file contains can
make ``add_file`` raise; every problem becomes a PluginError under the file's
path. ``finalize`` then runs the checks that need every file at once
(format version agreement, cross-file name uniqueness, environment merging)
and freezes the collection.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple, Union

from gocd_yaml.codes import COLLECTION_SCOPE, ErrorCode
from gocd_yaml.contracts import PluginError
from gocd_yaml.kernel.model import Environment, EnvironmentVariable, Pipeline, Template
from gocd_yaml.kernel.reader import MalformedDocument, RawNode
from gocd_yaml.kernel.transforms import PartialConfig, RootTransform, TransformContext

logger = logging.getLogger(__name__)

DEFAULT_FORMAT_VERSION = 1


class CollectionFrozenError(RuntimeError):
    """Raised when a finalized collection is modified."""


class ConfigCollection:
    """Merged pipelines, environments and templates plus per-file errors."""

    def __init__(self, default_format_version: Optional[int] = None):
        self.default_format_version = (
            default_format_version if default_format_version is not None else DEFAULT_FORMAT_VERSION
        )
        self._files: List[Tuple[str, PartialConfig]] = []
        self._errors: "OrderedDict[str, List[PluginError]]" = OrderedDict()
        self._frozen = False
        self._target_version: Optional[int] = None
        self._pipelines: List[Pipeline] = []
        self._environments: List[Environment] = []
        self._templates: List[Template] = []
        self._transform = RootTransform()

    # --- population ---------------------------------------------------------

    def add_file(self, location: str, document: Union[RawNode, MalformedDocument]) -> None:
        """Incorporate one file: its raw tree, or the error that prevented reading it."""
        self._check_open()
        if isinstance(document, MalformedDocument):
            logger.warning("Rejected %s: %s", location, document.message)
            self.add_error(location, PluginError(
                message=document.describe(), location=location, code=document.code,
            ))
            return

        try:
            ctx = TransformContext(location)
            config = self._transform.transform(document, ctx)
        except Exception as e:
            logger.exception("Unexpected failure while transforming %s", location)
            self.add_error(location, PluginError(
                message=f"internal error while reading {location}: {e}",
                location=location,
                code=ErrorCode.INTERNAL_ERROR,
            ))
            return

        for error in ctx.errors:
            self.add_error(location, error)
        if ctx.errors:
            logger.warning("%s: %d error(s)", location, len(ctx.errors))
        logger.debug(
            "%s: %d pipeline(s), %d environment(s), %d template(s)",
            location, len(config.pipelines), len(config.environments), len(config.templates),
        )
        self._files.append((location, config))

    def add_error(self, label: str, error: PluginError) -> None:
        self._check_open()
        self._errors.setdefault(label, []).append(error)

    # --- merge ----------------------------------------------------------------

    def finalize(self) -> "ConfigCollection":
        """Resolve the version, merge across files and freeze. Idempotent."""
        if self._frozen:
            return self
        self._target_version = self._resolve_version()
        self._pipelines = self._unique_by_name(
            [(loc, p) for loc, config in self._files for p in config.pipelines], "pipeline"
        )
        self._templates = self._unique_by_name(
            [(loc, t) for loc, config in self._files for t in config.templates], "template"
        )
        self._environments = self._merge_environments()
        self._frozen = True
        return self

    def _resolve_version(self) -> Optional[int]:
        declared = [
            (loc, config.format_version)
            for loc, config in self._files
            if config.format_version is not None
        ]
        versions = {version for _, version in declared}
        if len(versions) > 1:
            listing = ", ".join(f"{loc} ({version})" for loc, version in declared)
            self._collection_error(
                ErrorCode.VERSION_MISMATCH,
                f"files declare different format versions: {listing}",
            )
            return None
        if versions:
            return versions.pop()
        return self.default_format_version

    def _unique_by_name(self, entries: List[Tuple[str, Any]], what: str) -> List[Any]:
        by_name: "OrderedDict[str, List[Tuple[str, Any]]]" = OrderedDict()
        for location, entity in entries:
            by_name.setdefault(entity.name, []).append((location, entity))
        unique = []
        for name, copies in by_name.items():
            if len(copies) == 1:
                unique.append(copies[0][1])
                continue
            files = ", ".join(location for location, _ in copies)
            self._collection_error(
                ErrorCode.DUPLICATE_NAME,
                f"{what} '{name}' is defined more than once: {files}",
            )
        return unique

    def _merge_environments(self) -> List[Environment]:
        merged: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for location, config in self._files:
            for env in config.environments:
                slot = merged.setdefault(env.name, {
                    "variables": OrderedDict(), "agents": [], "pipelines": [],
                })
                self._merge_variables(env, location, slot["variables"])
                for agent in env.agents:
                    if agent not in slot["agents"]:
                        slot["agents"].append(agent)
                for pipeline in env.pipelines:
                    if pipeline not in slot["pipelines"]:
                        slot["pipelines"].append(pipeline)

        owner: Dict[str, str] = {}
        for env_name, slot in merged.items():
            for pipeline in slot["pipelines"]:
                if pipeline in owner:
                    self._collection_error(
                        ErrorCode.DUPLICATE_NAME,
                        f"pipeline '{pipeline}' is associated with environments "
                        f"'{owner[pipeline]}' and '{env_name}'",
                    )
                else:
                    owner[pipeline] = env_name

        return [
            Environment(
                name=name,
                environment_variables=[variable for variable, _ in slot["variables"].values()],
                agents=slot["agents"],
                pipelines=slot["pipelines"],
            )
            for name, slot in merged.items()
        ]

    def _merge_variables(
        self,
        env: Environment,
        location: str,
        variables: "OrderedDict[str, Tuple[EnvironmentVariable, str]]",
    ) -> None:
        for variable in env.environment_variables:
            existing = variables.get(variable.name)
            if existing is None:
                variables[variable.name] = (variable, location)
            elif existing[0] != variable:
                self._collection_error(
                    ErrorCode.DUPLICATE_NAME,
                    f"environment '{env.name}' declares variable '{variable.name}' "
                    f"differently in {existing[1]} and {location}",
                )

    def _collection_error(self, code: ErrorCode, message: str) -> None:
        logger.warning("%s", message)
        self._errors.setdefault(COLLECTION_SCOPE, []).append(
            PluginError(message=message, location=COLLECTION_SCOPE, code=code)
        )

    def _check_open(self) -> None:
        if self._frozen:
            raise CollectionFrozenError("collection is finalized and read-only")

    # --- results ------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def target_version(self) -> Optional[int]:
        return self._target_version

    @property
    def pipelines(self) -> List[Pipeline]:
        return list(self._pipelines)

    @property
    def environments(self) -> List[Environment]:
        return list(self._environments)

    @property
    def templates(self) -> List[Template]:
        return list(self._templates)

    @property
    def errors(self) -> Dict[str, List[PluginError]]:
        return {label: list(errors) for label, errors in self._errors.items()}

    def error_count(self) -> int:
        return sum(len(errors) for errors in self._errors.values())

    def has_errors(self) -> bool:
        return bool(self._errors)

    def to_json(self) -> Dict[str, Any]:
        """Serialized form. ``target-version`` is absent when unresolved."""
        out: Dict[str, Any] = {}
        if self._target_version is not None:
            out["target-version"] = self._target_version
        out["pipelines"] = [p.model_dump(mode="json", exclude_none=True) for p in self._pipelines]
        out["environments"] = [e.model_dump(mode="json", exclude_none=True) for e in self._environments]
        out["templates"] = [t.model_dump(mode="json", exclude_none=True) for t in self._templates]
        out["errors"] = {
            label: [error.to_json() for error in errors]
            for label, errors in self._errors.items()
        }
        return out

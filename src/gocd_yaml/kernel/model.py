"""Canonical entity records for pipeline configuration.

These are the strict records the forward transforms produce and the inverse
transforms consume. Field names follow the config-repo JSON the server reads,
so ``model_dump(mode="json")`` is the wire shape.

Tasks, materials and artifacts are closed tagged unions keyed by ``type``.
Adding a kind means adding a model here, listing it in the union, and
teaching the matching transform module both directions.
"""

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid")


class EnvironmentVariable(_Record):
    """A plain (``value``) or secure (``encrypted_value``) variable."""
    name: str = Field(..., min_length=1)
    value: Optional[str] = None
    encrypted_value: Optional[str] = None

    @model_validator(mode="after")
    def _one_value(self) -> "EnvironmentVariable":
        if (self.value is None) == (self.encrypted_value is None):
            raise ValueError(
                f"environment variable '{self.name}' needs exactly one of value / encrypted_value"
            )
        return self

    @property
    def secure(self) -> bool:
        return self.encrypted_value is not None


class Parameter(_Record):
    name: str = Field(..., min_length=1)
    value: str = ""


class ConfigurationProperty(_Record):
    """Key/value pair for plugin and external-artifact configuration."""
    key: str = Field(..., min_length=1)
    value: Optional[str] = None
    encrypted_value: Optional[str] = None

    @model_validator(mode="after")
    def _one_value(self) -> "ConfigurationProperty":
        if (self.value is None) == (self.encrypted_value is None):
            raise ValueError(f"property '{self.key}' needs exactly one of value / encrypted_value")
        return self


class PluginConfiguration(_Record):
    id: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class Approval(_Record):
    """Stage gate. ``success`` means the stage runs automatically."""
    type: Literal["success", "manual"] = "success"
    users: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    allow_only_on_success: bool = False


class Timer(_Record):
    spec: str = Field(..., min_length=1)
    only_on_changes: bool = False


class TrackingTool(_Record):
    link: str = Field(..., min_length=1)
    regex: str = Field(..., min_length=1)


class Tab(_Record):
    name: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)


class Filter(_Record):
    """Material path filter: either an ignore list or an includes list."""
    ignore: List[str] = Field(default_factory=list)
    includes: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _exclusive(self) -> "Filter":
        if self.ignore and self.includes:
            raise ValueError("filter cannot have both ignore and includes")
        return self


# --- Artifacts -------------------------------------------------------------

class BuiltinArtifact(_Record):
    type: Literal["build", "test"]
    source: str = Field(..., min_length=1)
    destination: Optional[str] = None


class ExternalArtifact(_Record):
    type: Literal["external"]
    id: str = Field(..., min_length=1)
    store_id: str = Field(..., min_length=1)
    configuration: List[ConfigurationProperty] = Field(default_factory=list)


Artifact = Annotated[Union[BuiltinArtifact, ExternalArtifact], Field(discriminator="type")]


# --- Tasks -----------------------------------------------------------------

class _TaskBase(_Record):
    run_if: Literal["passed", "failed", "any"] = "passed"
    on_cancel: Optional["Task"] = None


class ExecTask(_TaskBase):
    type: Literal["exec"]
    command: str = Field(..., min_length=1)
    arguments: List[str] = Field(default_factory=list)
    working_directory: Optional[str] = None


class FetchTask(_TaskBase):
    type: Literal["fetch"]
    artifact_origin: Literal["gocd", "external"] = "gocd"
    pipeline: Optional[str] = None
    stage: str = Field(..., min_length=1)
    job: str = Field(..., min_length=1)
    source: Optional[str] = None
    is_source_a_file: bool = False
    destination: Optional[str] = None
    artifact_id: Optional[str] = None
    configuration: List[ConfigurationProperty] = Field(default_factory=list)

    @model_validator(mode="after")
    def _origin_fields(self) -> "FetchTask":
        if self.artifact_origin == "gocd" and not self.source:
            raise ValueError("fetch task from gocd requires source")
        if self.artifact_origin == "external" and not self.artifact_id:
            raise ValueError("fetch task from external store requires artifact_id")
        return self


class PluginTask(_TaskBase):
    type: Literal["plugin"]
    plugin_configuration: PluginConfiguration
    configuration: List[ConfigurationProperty] = Field(default_factory=list)


class AntTask(_TaskBase):
    type: Literal["ant"]
    build_file: Optional[str] = None
    target: Optional[str] = None
    working_directory: Optional[str] = None


class NantTask(_TaskBase):
    type: Literal["nant"]
    build_file: Optional[str] = None
    target: Optional[str] = None
    working_directory: Optional[str] = None
    nant_path: Optional[str] = None


class RakeTask(_TaskBase):
    type: Literal["rake"]
    build_file: Optional[str] = None
    target: Optional[str] = None
    working_directory: Optional[str] = None


Task = Annotated[
    Union[ExecTask, FetchTask, PluginTask, AntTask, NantTask, RakeTask],
    Field(discriminator="type"),
]

for _model in (ExecTask, FetchTask, PluginTask, AntTask, NantTask, RakeTask):
    _model.model_rebuild()


# --- Materials -------------------------------------------------------------

class _MaterialBase(_Record):
    name: Optional[str] = None


class _ScmMaterialBase(_MaterialBase):
    destination: Optional[str] = None
    auto_update: bool = True
    filter: Optional[Filter] = None
    username: Optional[str] = None
    encrypted_password: Optional[str] = None


class GitMaterial(_ScmMaterialBase):
    type: Literal["git"]
    url: str = Field(..., min_length=1)
    branch: Optional[str] = None
    shallow_clone: bool = False


class HgMaterial(_ScmMaterialBase):
    type: Literal["hg"]
    url: str = Field(..., min_length=1)
    branch: Optional[str] = None


class SvnMaterial(_ScmMaterialBase):
    type: Literal["svn"]
    url: str = Field(..., min_length=1)
    check_externals: bool = False


class P4Material(_ScmMaterialBase):
    type: Literal["p4"]
    port: str = Field(..., min_length=1)
    view: str = Field(..., min_length=1)
    use_tickets: bool = False


class TfsMaterial(_ScmMaterialBase):
    type: Literal["tfs"]
    url: str = Field(..., min_length=1)
    project: str = Field(..., min_length=1)
    domain: Optional[str] = None


class DependencyMaterial(_MaterialBase):
    type: Literal["dependency"]
    pipeline: str = Field(..., min_length=1)
    stage: str = Field(..., min_length=1)
    ignore_for_scheduling: bool = False


class PackageMaterial(_MaterialBase):
    type: Literal["package"]
    package_id: str = Field(..., min_length=1)


class PluginMaterial(_MaterialBase):
    type: Literal["plugin"]
    scm_id: str = Field(..., min_length=1)
    destination: Optional[str] = None
    filter: Optional[Filter] = None


Material = Annotated[
    Union[
        GitMaterial,
        HgMaterial,
        SvnMaterial,
        P4Material,
        TfsMaterial,
        DependencyMaterial,
        PackageMaterial,
        PluginMaterial,
    ],
    Field(discriminator="type"),
]


# --- Pipeline graph --------------------------------------------------------

class Job(_Record):
    name: str = Field(..., min_length=1)
    tasks: List[Task] = Field(..., min_length=1)
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)
    timeout: Optional[int] = Field(None, ge=0)
    run_instance_count: Optional[Union[int, Literal["all"]]] = None
    resources: List[str] = Field(default_factory=list)
    elastic_profile_id: Optional[str] = None
    tabs: List[Tab] = Field(default_factory=list)
    artifacts: List[Artifact] = Field(default_factory=list)

    @model_validator(mode="after")
    def _resources_or_profile(self) -> "Job":
        if self.resources and self.elastic_profile_id:
            raise ValueError(f"job '{self.name}' cannot have both resources and elastic_profile_id")
        return self

    @model_validator(mode="after")
    def _run_instances(self) -> "Job":
        if isinstance(self.run_instance_count, int) and self.run_instance_count < 1:
            raise ValueError(f"job '{self.name}' run_instance_count must be at least 1 or 'all'")
        return self


class Stage(_Record):
    name: str = Field(..., min_length=1)
    jobs: List[Job] = Field(..., min_length=1)
    fetch_materials: bool = True
    never_cleanup_artifacts: bool = False
    clean_working_directory: bool = False
    approval: Approval = Field(default_factory=Approval)
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)


class Pipeline(_Record):
    name: str = Field(..., min_length=1)
    materials: List[Material] = Field(..., min_length=1)
    stages: List[Stage] = Field(default_factory=list)
    group: Optional[str] = None
    label_template: Optional[str] = None
    lock_behavior: Optional[Literal["none", "lockOnFailure", "unlockWhenFinished"]] = None
    display_order_weight: int = -1
    template: Optional[str] = None
    parameters: List[Parameter] = Field(default_factory=list)
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)
    timer: Optional[Timer] = None
    tracking_tool: Optional[TrackingTool] = None
    location: Optional[str] = Field(None, description="Source file; not part of the dialect")

    @model_validator(mode="after")
    def _stages_or_template(self) -> "Pipeline":
        if self.stages and self.template:
            raise ValueError(f"pipeline '{self.name}' cannot have both stages and template")
        if not self.stages and not self.template:
            raise ValueError(f"pipeline '{self.name}' needs stages or a template")
        return self


class Environment(_Record):
    name: str = Field(..., min_length=1)
    environment_variables: List[EnvironmentVariable] = Field(default_factory=list)
    agents: List[str] = Field(default_factory=list)
    pipelines: List[str] = Field(default_factory=list)


class Template(_Record):
    name: str = Field(..., min_length=1)
    stages: List[Stage] = Field(..., min_length=1)
    location: Optional[str] = None

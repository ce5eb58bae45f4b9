"""Environments.

Dialect::

    environments:
      staging:
        environment_variables: {DEPLOY_ENV: staging}
        agents: [agent-uuid-1]
        pipelines: [app, api]

Pipeline names are weak references and need not resolve.
"""

from typing import Any, Dict, Optional

from gocd_yaml.kernel.model import Environment
from gocd_yaml.kernel.transforms.base import (
    TransformContext,
    build_record,
    check_keys,
    expect_mapping,
    read_str_list,
    report_duplicates,
)
from gocd_yaml.kernel.transforms.variables import VARIABLE_KEYS, EnvironmentVariablesTransform

LIST_KEYS = ("agents", "pipelines")


class EnvironmentTransform:

    def __init__(self):
        self.variables = EnvironmentVariablesTransform()

    def transform(self, name: str, node: Any, ctx: TransformContext) -> Optional[Environment]:
        if node is None:
            node = {}
        mapping = expect_mapping(node, ctx, "environment")
        if mapping is None:
            return None
        shape_ok = check_keys(mapping, ctx, LIST_KEYS + VARIABLE_KEYS)
        variables = self.variables.transform(mapping, ctx)
        agents = read_str_list(mapping, "agents", ctx)
        pipelines = read_str_list(mapping, "pipelines", ctx)
        if pipelines is not None and not report_duplicates(pipelines, ctx.child("pipelines"), "pipeline"):
            pipelines = None
        if not shape_ok or variables is None or agents is None or pipelines is None:
            return None
        return build_record(
            Environment,
            dict(name=name, environment_variables=variables, agents=agents, pipelines=pipelines),
            ctx,
        )

    def inverse_transform(self, environment: Environment) -> Dict[str, Any]:
        out = self.variables.inverse_transform(environment.environment_variables)
        if environment.agents:
            out["agents"] = list(environment.agents)
        if environment.pipelines:
            out["pipelines"] = list(environment.pipelines)
        return out

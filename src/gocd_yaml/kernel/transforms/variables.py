"""Environment variables and pipeline parameters.

Dialect::

    environment_variables:
      DEPLOY_ENV: staging
    secure_variables:
      API_TOKEN: "AES:..."
    parameters:
      region: eu-west-1

Records: plain variables first (in source order), then secure ones.
"""

from typing import Any, Dict, List, Optional

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import EnvironmentVariable, Parameter
from gocd_yaml.kernel.transforms.base import TransformContext, read_str_map

PLAIN_KEY = "environment_variables"
SECURE_KEY = "secure_variables"
PARAMETERS_KEY = "parameters"

VARIABLE_KEYS = (PLAIN_KEY, SECURE_KEY)


class EnvironmentVariablesTransform:

    def transform(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[EnvironmentVariable]]:
        plain = read_str_map(mapping, PLAIN_KEY, ctx)
        secure = read_str_map(mapping, SECURE_KEY, ctx)
        if plain is None or secure is None:
            return None

        plain_names = {name for name, _ in plain}
        clashes = [name for name, _ in secure if name in plain_names]
        for name in clashes:
            ctx.child(SECURE_KEY).error(
                ErrorCode.DUPLICATE_NAME,
                f"variable '{name}' is declared in both {PLAIN_KEY} and {SECURE_KEY}",
            )
        if clashes:
            return None

        variables = [EnvironmentVariable(name=name, value=value) for name, value in plain]
        variables.extend(
            EnvironmentVariable(name=name, encrypted_value=value) for name, value in secure
        )
        return variables

    def inverse_transform(self, variables: List[EnvironmentVariable]) -> Dict[str, Any]:
        """Emit the two variable maps, omitting empty ones."""
        out: Dict[str, Any] = {}
        plain = {v.name: v.value for v in variables if not v.secure}
        secure = {v.name: v.encrypted_value for v in variables if v.secure}
        if plain:
            out[PLAIN_KEY] = plain
        if secure:
            out[SECURE_KEY] = secure
        return out


class ParametersTransform:

    def transform(self, mapping: Dict[str, Any], ctx: TransformContext) -> Optional[List[Parameter]]:
        pairs = read_str_map(mapping, PARAMETERS_KEY, ctx)
        if pairs is None:
            return None
        return [Parameter(name=name, value=value) for name, value in pairs]

    def inverse_transform(self, parameters: List[Parameter]) -> Dict[str, Any]:
        if not parameters:
            return {}
        return {PARAMETERS_KEY: {p.name: p.value for p in parameters}}

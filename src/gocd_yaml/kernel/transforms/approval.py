"""Stage approval.

Absent means automatic (``success``) with no authorization restriction.
``approval: manual`` is the shorthand for a manual gate with no users or
roles; anything richer uses the long form::

    approval:
      type: manual
      roles: [release-managers]
      users: [alice]
      allow_only_on_success: true
"""

from typing import Any, Optional

from gocd_yaml.codes import ErrorCode
from gocd_yaml.kernel.model import Approval
from gocd_yaml.kernel.transforms.base import (
    ScalarField,
    TransformContext,
    build_record,
    check_keys,
    field_keys,
    read_scalars,
    read_str_list,
    type_name,
    write_scalars,
)

# dialect spelling -> record value
TYPE_ALIASES = {"manual": "manual", "success": "success", "auto": "success"}

FIELDS = (
    ScalarField("type", "type", default="success", choices=tuple(TYPE_ALIASES)),
    ScalarField("allow_only_on_success", "allow_only_on_success", kind="bool", default=False),
)
LIST_KEYS = ("roles", "users")

DEFAULT = Approval()


class ApprovalTransform:

    def transform(self, node: Any, ctx: TransformContext) -> Optional[Approval]:
        if node is None:
            return Approval()
        if isinstance(node, str):
            kind = TYPE_ALIASES.get(node)
            if kind is None:
                ctx.error(
                    ErrorCode.INVALID_FIELD_VALUE,
                    f"approval must be one of {', '.join(TYPE_ALIASES)}; got '{node}'",
                )
                return None
            return Approval(type=kind)
        if not isinstance(node, dict):
            ctx.error(
                ErrorCode.INVALID_FIELD_VALUE,
                f"approval must be a string or a mapping, got {type_name(node)}",
            )
            return None

        shape_ok = check_keys(node, ctx, field_keys(FIELDS) + LIST_KEYS)
        values = read_scalars(node, FIELDS, ctx)
        roles = read_str_list(node, "roles", ctx)
        users = read_str_list(node, "users", ctx)
        if not shape_ok or values is None or roles is None or users is None:
            return None
        values["type"] = TYPE_ALIASES[values["type"]]
        return build_record(Approval, dict(values, roles=roles, users=users), ctx)

    def inverse_transform(self, approval: Approval) -> Any:
        """None for the default, the bare type for a plain gate, else a mapping."""
        if approval == DEFAULT:
            return None
        if not approval.users and not approval.roles and not approval.allow_only_on_success:
            return approval.type
        out = {"type": approval.type}
        out.update(write_scalars(approval, FIELDS[1:]))
        if approval.roles:
            out["roles"] = list(approval.roles)
        if approval.users:
            out["users"] = list(approval.users)
        return out

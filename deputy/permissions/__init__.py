"""Permission policy evaluation for agent tool calls."""

from deputy.permissions.decisions import (
    PermissionAllow,
    PermissionContext,
    PermissionDecision,
    PermissionDeny,
    allow,
    deny,
)
from deputy.permissions.paths import has_path_traversal, is_path_within, resolve_within
from deputy.permissions.policy import (
    PermissionCallback,
    Permissions,
    permissions_full,
    permissions_readonly,
    permissions_standard,
)


__all__ = [
    "PermissionAllow",
    "PermissionCallback",
    "PermissionContext",
    "PermissionDecision",
    "PermissionDeny",
    "Permissions",
    "allow",
    "deny",
    "has_path_traversal",
    "is_path_within",
    "permissions_full",
    "permissions_readonly",
    "permissions_standard",
    "resolve_within",
]

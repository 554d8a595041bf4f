import re

from typing import Literal

from ..constants import RESOURCE_SAVED_QUERY

__all__ = [
    "Action",
    "Scope",
    "ACTIONS",
    "SCOPES",
    "PermissionDefinitionError",
    "Permission",
    "PERMISSIONS",
    "PERMISSIONS_BY_STRING",
    "define_resource_permissions",
    "parse_permission",
    "get_permission",
    # savedQuery:
    "P_CREATE_OWN_SAVED_QUERY",
    "P_CREATE_ANY_SAVED_QUERY",
    "P_READ_OWN_SAVED_QUERY",
    "P_READ_ANY_SAVED_QUERY",
    "P_UPDATE_OWN_SAVED_QUERY",
    "P_UPDATE_ANY_SAVED_QUERY",
    "P_DELETE_OWN_SAVED_QUERY",
    "P_DELETE_ANY_SAVED_QUERY",
]

# Permissions are of the form <action>:<scope>:<resource type>, e.g. read:any:savedQuery
#  - action: one of the four CRUD verbs
#  - scope:  'own' applies only to records created by the actor; 'any' applies regardless of ownership
#            and therefore also gives the matching 'own' permission.

Action = Literal["create", "read", "update", "delete"]
Scope = Literal["own", "any"]

ACTIONS: tuple[Action, ...] = ("create", "read", "update", "delete")
SCOPES: tuple[Scope, ...] = ("own", "any")

RESOURCE_TYPE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class PermissionDefinitionError(Exception):
    pass


class Permission(str):
    action: Action
    scope: Scope
    resource: str

    def __new__(cls, action: Action, scope: Scope, resource: str):
        if action not in ACTIONS:
            raise PermissionDefinitionError(f"Invalid action: {action}")
        if scope not in SCOPES:
            raise PermissionDefinitionError(f"Invalid scope: {scope}")
        if not RESOURCE_TYPE_PATTERN.match(resource):
            raise PermissionDefinitionError(f"Invalid resource type: {resource}")

        obj = super().__new__(cls, f"{action}:{scope}:{resource}")
        obj.action = action
        obj.scope = scope
        obj.resource = resource
        return obj

    @property
    def gives(self) -> tuple["Permission", ...]:
        if self.scope == "any":
            return (Permission(self.action, "own", self.resource),)
        return ()


PERMISSIONS: list[Permission] = []
PERMISSIONS_BY_STRING: dict[str, Permission] = {}


def define_resource_permissions(resource: str) -> dict[tuple[Action, Scope], Permission]:
    """
    Registers every action/scope permission for a resource type, making them known to the service (listing
    endpoints, CLI). Returns the permissions keyed by (action, scope).
    """

    defined: dict[tuple[Action, Scope], Permission] = {}
    for action in ACTIONS:
        for scope in SCOPES:
            p = Permission(action, scope, resource)
            if p not in PERMISSIONS_BY_STRING:
                PERMISSIONS.append(p)
                PERMISSIONS_BY_STRING[p] = p
            defined[(action, scope)] = PERMISSIONS_BY_STRING[p]
    return defined


def parse_permission(p: str) -> Permission:
    if (known := PERMISSIONS_BY_STRING.get(p)) is not None:
        return known

    parts = p.split(":")
    if len(parts) != 3:
        raise PermissionDefinitionError(f"Permission must be of the form <action>:<scope>:<resource>, got {p}")

    # noinspection PyTypeChecker
    return Permission(*parts)


def get_permission(action: Action, scope: Scope, resource: str) -> Permission:
    return parse_permission(f"{action}:{scope}:{resource}")


_saved_query_permissions = define_resource_permissions(RESOURCE_SAVED_QUERY)

P_CREATE_OWN_SAVED_QUERY = _saved_query_permissions[("create", "own")]
P_CREATE_ANY_SAVED_QUERY = _saved_query_permissions[("create", "any")]
P_READ_OWN_SAVED_QUERY = _saved_query_permissions[("read", "own")]
P_READ_ANY_SAVED_QUERY = _saved_query_permissions[("read", "any")]
P_UPDATE_OWN_SAVED_QUERY = _saved_query_permissions[("update", "own")]
P_UPDATE_ANY_SAVED_QUERY = _saved_query_permissions[("update", "any")]
P_DELETE_OWN_SAVED_QUERY = _saved_query_permissions[("delete", "own")]
P_DELETE_ANY_SAVED_QUERY = _saved_query_permissions[("delete", "any")]

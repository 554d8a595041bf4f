import itertools
import json
import jsonschema

from fastapi import Depends
from functools import lru_cache
from pathlib import Path
from structlog.stdlib import BoundLogger
from typing import Annotated, Iterable

from ..config import ConfigDependency
from ..constants import RESOURCE_SAVED_QUERY
from ..json_schemas import POLICY
from ..logger import LoggerDependency
from ..models import PolicyModel, RoleGrantsModel
from .permissions import (
    Action,
    Permission,
    PermissionDefinitionError,
    Scope,
    get_permission,
    parse_permission,
    P_CREATE_ANY_SAVED_QUERY,
    P_READ_ANY_SAVED_QUERY,
    P_UPDATE_ANY_SAVED_QUERY,
    P_DELETE_ANY_SAVED_QUERY,
)

__all__ = [
    "InvalidPolicy",
    "DEFAULT_POLICY",
    "load_policy",
    "resolve_role_grants",
    "determine_permissions",
    "evaluate_role_and_permission",
    "PolicyEngine",
    "get_policy_engine",
    "PolicyEngineDependency",
]


# Policy evaluation
# Given:
#    - a role (or None, if the actor has no role in the relevant team)
#    - an action, a resource type and a scope (together: a permission)
#    - a policy mapping roles to granted permissions, possibly extending other roles
# - Calculate:
#    - whether the role is granted the permission, either directly, via an extended role, or via an 'any'
#      permission which gives the equivalent 'own' permission
# - Yield:
#    - a boolean response
#    - a log of the decision made, for whom, and on what


class InvalidPolicy(Exception):
    pass


DEFAULT_POLICY = PolicyModel(
    roles={
        "viewer": RoleGrantsModel(grants=frozenset({P_READ_ANY_SAVED_QUERY})),
        "editor": RoleGrantsModel(
            grants=frozenset({P_CREATE_ANY_SAVED_QUERY, P_UPDATE_ANY_SAVED_QUERY}),
            extends=("viewer",),
        ),
        "admin": RoleGrantsModel(grants=frozenset({P_DELETE_ANY_SAVED_QUERY}), extends=("editor",)),
        "owner": RoleGrantsModel(extends=("admin",)),
    }
)


def load_policy(path: Path) -> PolicyModel:
    """
    Loads a policy document from a JSON file, validating it against the policy JSON schema first.
    :param path: Path to the JSON policy document.
    :return: The validated policy.
    """

    try:
        data = json.loads(path.read_text())
        jsonschema.validate(data, POLICY, cls=jsonschema.Draft202012Validator)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidPolicy(f"Could not read policy from {path}: {e}") from e
    except jsonschema.ValidationError as e:
        raise InvalidPolicy(f"Policy at {path} is invalid: {e.message}") from e

    return PolicyModel.model_validate(data)


def resolve_role_grants(policy: PolicyModel, role: str, _chain: tuple[str, ...] = ()) -> frozenset[str]:
    """
    Collects the permission strings granted to a role, including those of any roles it extends (transitively).
    :param policy: The policy to resolve the role against.
    :param role: The role to resolve.
    :return: The set of granted permission strings, not including permissions given by other permissions.
    """

    if role in _chain:
        raise InvalidPolicy(f"Cyclic role extension: {' -> '.join((*_chain, role))}")

    if (role_def := policy.roles.get(role)) is None:
        if _chain:  # an extended role which does not exist is a policy definition error
            raise InvalidPolicy(f"Role {_chain[-1]} extends undefined role {role}")
        return frozenset()  # unknown roles are granted nothing

    return role_def.grants.union(
        *(resolve_role_grants(policy, parent, (*_chain, role)) for parent in role_def.extends)
    )


def _permission_and_gives(p: str) -> Iterable[Permission]:
    perm = parse_permission(p)
    yield perm
    yield from perm.gives


def determine_permissions(policy: PolicyModel, role: str | None) -> frozenset[Permission]:
    """
    Given a role (or None if the actor has no role), return the set of permissions the role holds.
    """

    if role is None:
        return frozenset()

    return frozenset(itertools.chain.from_iterable(map(_permission_and_gives, resolve_role_grants(policy, role))))


def evaluate_role_and_permission(policy: PolicyModel, role: str | None, permission: Permission) -> bool:
    # Permitted if the required permission is contained in the permissions this role has.
    return permission in determine_permissions(policy, role)


class PolicyEngine:
    def __init__(self, policy: PolicyModel, logger: BoundLogger):
        self._policy: PolicyModel = policy
        self._logger: BoundLogger = logger

        # Resolve every role up front so that a bad policy (cycles, undefined roles, malformed permissions) is
        # rejected when the service starts rather than when a request happens to hit the broken role.
        try:
            self._permissions_by_role: dict[str, frozenset[Permission]] = {
                role: determine_permissions(policy, role) for role in policy.roles
            }
        except PermissionDefinitionError as e:
            raise InvalidPolicy(str(e)) from e

    @property
    def policy(self) -> PolicyModel:
        return self._policy

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(sorted(self._policy.roles))

    def permissions_for_role(self, role: str | None) -> frozenset[Permission]:
        if role is None:
            return frozenset()
        return self._permissions_by_role.get(role, frozenset())

    def can(
        self,
        role: str | None,
        action: Action,
        resource: str = RESOURCE_SAVED_QUERY,
        scope: Scope = "any",
    ) -> bool:
        return get_permission(action, scope, resource) in self.permissions_for_role(role)

    async def evaluate(self, role: str | None, permission: Permission) -> bool:
        decision = permission in self.permissions_for_role(role)
        await self._logger.ainfo("evaluate", role=role, permission=str(permission), decision=decision)
        return decision


@lru_cache()
def _build_policy_engine(policy_path: str | None, logger: BoundLogger) -> PolicyEngine:
    policy = load_policy(Path(policy_path)) if policy_path else DEFAULT_POLICY
    return PolicyEngine(policy, logger)


def get_policy_engine(config: ConfigDependency, logger: LoggerDependency) -> PolicyEngine:
    return _build_policy_engine(config.policy_path, logger)


PolicyEngineDependency = Annotated[PolicyEngine, Depends(get_policy_engine)]

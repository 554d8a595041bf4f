from fastapi import APIRouter
from pydantic import BaseModel

from ..authz import authz_middleware
from ..policy_engine.evaluation import PolicyEngineDependency

__all__ = [
    "policy_router",
]

policy_router = APIRouter(prefix="/policy")


class RoleResponseItem(BaseModel):
    role: str
    grants: list[str]
    extends: list[str]
    # Everything the role ends up holding: own grants, inherited grants, and permissions given by those
    permissions: list[str]


@policy_router.get("/roles", dependencies=[authz_middleware.dep_public_endpoint()])
def list_roles(policy_engine: PolicyEngineDependency) -> list[RoleResponseItem]:
    roles = policy_engine.policy.roles
    return [
        RoleResponseItem(
            role=role,
            grants=sorted(roles[role].grants),
            extends=list(roles[role].extends),
            permissions=sorted(map(str, policy_engine.permissions_for_role(role))),
        )
        for role in policy_engine.roles
    ]

from fastapi import APIRouter
from pydantic import BaseModel

from ..authz import authz_middleware
from ..policy_engine.permissions import PERMISSIONS, Permission

__all__ = [
    "all_permissions_router",
]

all_permissions_router = APIRouter(prefix="/all_permissions")


class PermissionResponseItem(BaseModel):
    id: str
    action: str
    scope: str
    resource: str
    gives: tuple[str, ...]


def response_item_from_permission(p: Permission) -> PermissionResponseItem:
    return PermissionResponseItem(
        id=str(p),
        action=p.action,
        scope=p.scope,
        resource=p.resource,
        gives=tuple(map(str, p.gives)),
    )


@all_permissions_router.get("/", dependencies=[authz_middleware.dep_public_endpoint()])
def list_all_permissions() -> list[PermissionResponseItem]:
    return list(map(response_item_from_permission, PERMISSIONS))

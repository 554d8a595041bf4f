from fastapi import Depends
from structlog.stdlib import BoundLogger
from typing import Annotated, Awaitable, Callable, Literal, TypeVar

from .db import DatabaseDependency
from .errors import NotFound, StoreFailure, Unauthorized
from .logger import LoggerDependency
from .models import DeletionConfirmation, SavedQueryModel, StoredProjectModel, StoredSavedQueryModel
from .policy_engine.evaluation import PolicyEngine, PolicyEngineDependency
from .policy_engine.permissions import (
    Permission,
    P_CREATE_ANY_SAVED_QUERY,
    P_READ_ANY_SAVED_QUERY,
    P_UPDATE_ANY_SAVED_QUERY,
)
from .protocols import ProjectResolver, SavedQueryStore, TeamRoleResolver

__all__ = [
    "Operation",
    "OPERATION_PERMISSIONS",
    "SavedQueryPipeline",
    "get_pipeline",
    "PipelineDependency",
]

T = TypeVar("T")

Operation = Literal["list", "create", "update", "remove"]

OPERATION_PERMISSIONS: dict[Operation, Permission] = {
    "list": P_READ_ANY_SAVED_QUERY,
    "create": P_CREATE_ANY_SAVED_QUERY,
    "update": P_UPDATE_ANY_SAVED_QUERY,
    "remove": P_UPDATE_ANY_SAVED_QUERY,
}


class SavedQueryPipeline:
    """
    Authorize-then-act pipeline for saved queries. Every operation runs the same strictly sequential chain:

     1. resolve the project (NotFound if it does not exist)
     2. resolve the actor's role in the project's owning team (NotFound if the actor holds no role)
     3. ask the policy engine whether the role holds the operation's permission (Unauthorized if not)
     4. run the store operation (StoreFailure if it raises or reports nothing was found)

    Each step either succeeds or raises; the store is only ever touched after step 3 has passed.
    """

    def __init__(
        self,
        projects: ProjectResolver,
        team_roles: TeamRoleResolver,
        policy_engine: PolicyEngine,
        store: SavedQueryStore,
        logger: BoundLogger,
    ):
        self._projects = projects
        self._team_roles = team_roles
        self._policy_engine = policy_engine
        self._store = store
        self._logger = logger

    async def _resolve_project(self, project_id: int) -> StoredProjectModel:
        try:
            project = await self._projects.get_project(project_id)
        except Exception as e:
            raise StoreFailure(f"Could not look up project {project_id}") from e

        if project is None:
            raise NotFound(f"Project {project_id} not found")

        return project

    async def _resolve_role(self, project: StoredProjectModel, actor_user_id: str) -> str:
        try:
            team_role = await self._team_roles.get_team_role(project.team_id, actor_user_id)
        except Exception as e:
            raise StoreFailure(f"Could not look up role in team {project.team_id}") from e

        if team_role is None:
            raise NotFound(f"No role found for actor in team {project.team_id}")

        return team_role.role

    async def _authorize(self, role: str, permission: Permission) -> None:
        if not await self._policy_engine.evaluate(role, permission):
            raise Unauthorized(f"Role {role} does not have permission {permission}")

    @staticmethod
    async def _act(
        operation: Operation,
        act: Callable[[StoredProjectModel], Awaitable[T | None]],
        project: StoredProjectModel,
    ) -> T:
        try:
            res = await act(project)
        except Exception as e:
            raise StoreFailure(f"Store operation {operation} failed") from e

        if res is None:
            raise StoreFailure(f"Store operation {operation} did not find a matching saved query")

        return res

    async def _run(
        self,
        operation: Operation,
        project_id: int,
        actor_user_id: str,
        act: Callable[[StoredProjectModel], Awaitable[T | None]],
    ) -> T:
        logger = self._logger.bind(operation=operation, project_id=project_id, actor=actor_user_id)

        try:
            project = await self._resolve_project(project_id)
            role = await self._resolve_role(project, actor_user_id)
            await self._authorize(role, OPERATION_PERMISSIONS[operation])
            return await self._act(operation, act, project)

        except Unauthorized as e:
            await logger.awarning("saved query operation denied", error=e.message)
            raise
        except NotFound as e:
            await logger.ainfo("saved query operation target not found", error=e.message)
            raise
        except StoreFailure as e:
            await logger.aexception("saved query operation failed", error=e.message, exc_info=e.__cause__ or e)
            raise

    async def list(
        self, project_id: int, actor_user_id: str, type_filter: str | None = None
    ) -> tuple[StoredSavedQueryModel, ...]:
        return await self._run(
            "list",
            project_id,
            actor_user_id,
            lambda project: self._store.get_saved_queries_for_project(project.id, type_filter or None),
        )

    async def create(self, project_id: int, actor_user_id: str, summary: str, type_: str = "") -> StoredSavedQueryModel:
        # project_id and user_id always come from the resolved project and the verified actor, never the caller
        return await self._run(
            "create",
            project_id,
            actor_user_id,
            lambda project: self._store.create_saved_query(
                SavedQueryModel(project_id=project.id, user_id=actor_user_id, summary=summary, type=type_)
            ),
        )

    async def update(
        self, project_id: int, actor_user_id: str, saved_query_id: int, summary: str
    ) -> StoredSavedQueryModel:
        return await self._run(
            "update",
            project_id,
            actor_user_id,
            lambda project: self._store.update_saved_query(project.id, saved_query_id, summary),
        )

    async def remove(self, project_id: int, actor_user_id: str, saved_query_id: int) -> DeletionConfirmation:
        return await self._run(
            "remove",
            project_id,
            actor_user_id,
            lambda project: self._store.delete_saved_query(project.id, saved_query_id),
        )


def get_pipeline(
    db: DatabaseDependency,
    policy_engine: PolicyEngineDependency,
    logger: LoggerDependency,
) -> SavedQueryPipeline:
    # The database plays all three collaborator roles: project resolver, team role resolver, and store.
    return SavedQueryPipeline(db, db, policy_engine, db, logger)


PipelineDependency = Annotated[SavedQueryPipeline, Depends(get_pipeline)]

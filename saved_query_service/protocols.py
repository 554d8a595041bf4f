from typing import Protocol

from .models import (
    DeletionConfirmation,
    SavedQueryModel,
    StoredProjectModel,
    StoredSavedQueryModel,
    TeamRoleModel,
)

__all__ = [
    "ProjectResolver",
    "TeamRoleResolver",
    "SavedQueryStore",
]


class ProjectResolver(Protocol):
    async def get_project(self, project_id: int) -> StoredProjectModel | None:
        """Returns the project with the given ID, or None if it does not exist."""
        ...


class TeamRoleResolver(Protocol):
    async def get_team_role(self, team_id: int, user_id: str) -> TeamRoleModel | None:
        """Returns the role the user holds in the team, or None if the user is not a member of the team."""
        ...


class SavedQueryStore(Protocol):
    """
    Raw persistence operations for saved queries. No authorization happens here; callers must have already
    checked the actor's permissions on the owning project. Update and delete are scoped to a project, and return
    None if no matching saved query exists in that project.
    """

    async def get_saved_queries_for_project(
        self, project_id: int, type_: str | None = None
    ) -> tuple[StoredSavedQueryModel, ...]: ...

    async def create_saved_query(self, saved_query: SavedQueryModel) -> StoredSavedQueryModel | None: ...

    async def update_saved_query(
        self, project_id: int, saved_query_id: int, summary: str
    ) -> StoredSavedQueryModel | None: ...

    async def delete_saved_query(self, project_id: int, saved_query_id: int) -> DeletionConfirmation | None: ...

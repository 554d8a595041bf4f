from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import Literal

__all__ = [
    # Teams / projects:
    "TeamModel",
    "StoredTeamModel",
    "ProjectModel",
    "StoredProjectModel",
    "TeamRoleModel",
    # Saved queries:
    "SavedQueryModel",
    "StoredSavedQueryModel",
    "SavedQueryCreateRequest",
    "SavedQueryUpdateRequest",
    "DeletionConfirmation",
    # Policy:
    "RoleGrantsModel",
    "PolicyModel",
]


class BaseImmutableModel(BaseModel):
    # Immutable hashable record
    model_config = ConfigDict(frozen=True)


class TeamModel(BaseImmutableModel):
    name: str


class StoredTeamModel(TeamModel):
    id: int
    created: datetime


class ProjectModel(BaseImmutableModel):
    team_id: int
    name: str = ""


class StoredProjectModel(ProjectModel):
    id: int
    created: datetime


class TeamRoleModel(BaseImmutableModel):
    team_id: int
    user_id: str
    role: str


class SavedQueryModel(BaseImmutableModel):
    """
    A saved query as handed to the store on creation. project_id and user_id are always filled in server-side
    from the resolved project and the verified actor identity.
    """

    project_id: int
    user_id: str
    summary: str
    type: str = ""


class StoredSavedQueryModel(SavedQueryModel):
    id: int
    created: datetime
    updated: datetime


class _RequestModel(BaseModel):
    # Unknown fields (e.g. a caller-supplied user_id or project_id) are dropped rather than stored.
    model_config = ConfigDict(extra="ignore")


class SavedQueryCreateRequest(_RequestModel):
    summary: str
    type: str = ""


class SavedQueryUpdateRequest(_RequestModel):
    summary: str


class DeletionConfirmation(BaseImmutableModel):
    id: int
    removed: Literal[True] = True


class RoleGrantsModel(BaseImmutableModel):
    grants: frozenset[str] = Field(default_factory=frozenset)
    extends: tuple[str, ...] = ()

    @field_serializer("grants")
    def serialize_grants(self, grants: frozenset[str], _info):
        # make set serialization have a consistent order
        return sorted(grants)


class PolicyModel(BaseImmutableModel):
    roles: dict[str, RoleGrantsModel]

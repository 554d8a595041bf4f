import asyncpg

from bento_lib.db.pg_async import PgAsyncDatabase
from fastapi import Depends
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from .config import ConfigDependency
from .models import (
    DeletionConfirmation,
    ProjectModel,
    SavedQueryModel,
    StoredProjectModel,
    StoredSavedQueryModel,
    StoredTeamModel,
    TeamModel,
    TeamRoleModel,
)

__all__ = [
    "Database",
    "get_db",
    "DatabaseDependency",
]


SCHEMA_PATH = Path(__file__).parent / "schema.sql"

SAVED_QUERY_COLUMNS = 'id, project_id, user_id, summary, "type", created, updated'


def team_db_deserialize(r: asyncpg.Record | None) -> StoredTeamModel | None:
    return None if r is None else StoredTeamModel(id=r["id"], name=r["name"], created=r["created"])


def project_db_deserialize(r: asyncpg.Record | None) -> StoredProjectModel | None:
    if r is None:
        return None
    return StoredProjectModel(id=r["id"], team_id=r["team_id"], name=r["name"], created=r["created"])


def team_role_db_deserialize(r: asyncpg.Record | None) -> TeamRoleModel | None:
    return None if r is None else TeamRoleModel(team_id=r["team_id"], user_id=r["user_id"], role=r["role"])


def saved_query_db_deserialize(r: asyncpg.Record | None) -> StoredSavedQueryModel | None:
    if r is None:
        return None
    return StoredSavedQueryModel(
        id=r["id"],
        project_id=r["project_id"],
        user_id=r["user_id"],
        summary=r["summary"],
        type=r["type"],
        created=r["created"],
        updated=r["updated"],
    )


class Database(PgAsyncDatabase):
    def __init__(self, db_uri: str):
        super().__init__(db_uri, SCHEMA_PATH)

    # Teams ------------------------------------------------------------------------------------------------------------

    async def get_team(self, id_: int) -> StoredTeamModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow("SELECT id, name, created FROM teams WHERE id = $1", id_)
            return team_db_deserialize(row)

    async def get_teams(self) -> tuple[StoredTeamModel, ...]:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            res = await conn.fetch("SELECT id, name, created FROM teams ORDER BY id")
            return tuple(team_db_deserialize(r) for r in res)

    async def create_team(self, team: TeamModel) -> int | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            return await conn.fetchval("INSERT INTO teams (name) VALUES ($1) RETURNING id", team.name)

    # Team roles -------------------------------------------------------------------------------------------------------

    async def get_team_role(self, team_id: int, user_id: str) -> TeamRoleModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow(
                "SELECT team_id, user_id, role FROM team_roles WHERE team_id = $1 AND user_id = $2",
                team_id,
                user_id,
            )
            return team_role_db_deserialize(row)

    async def get_team_roles(self, team_id: int) -> tuple[TeamRoleModel, ...]:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            res = await conn.fetch(
                "SELECT team_id, user_id, role FROM team_roles WHERE team_id = $1 ORDER BY user_id", team_id
            )
            return tuple(team_role_db_deserialize(r) for r in res)

    async def set_team_role(self, team_role: TeamRoleModel) -> None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            await conn.execute(
                "INSERT INTO team_roles (team_id, user_id, role) VALUES ($1, $2, $3) "
                "ON CONFLICT (team_id, user_id) DO UPDATE SET role = excluded.role",
                team_role.team_id,
                team_role.user_id,
                team_role.role,
            )

    async def remove_team_role(self, team_id: int, user_id: str) -> bool:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            res = await conn.fetchval(
                "DELETE FROM team_roles WHERE team_id = $1 AND user_id = $2 RETURNING user_id", team_id, user_id
            )
            return res is not None

    # Projects ---------------------------------------------------------------------------------------------------------

    async def get_project(self, project_id: int) -> StoredProjectModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow(
                "SELECT id, team_id, name, created FROM projects WHERE id = $1", project_id
            )
            return project_db_deserialize(row)

    async def get_projects(self) -> tuple[StoredProjectModel, ...]:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            res = await conn.fetch("SELECT id, team_id, name, created FROM projects ORDER BY id")
            return tuple(project_db_deserialize(r) for r in res)

    async def create_project(self, project: ProjectModel) -> int | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            try:
                return await conn.fetchval(
                    "INSERT INTO projects (team_id, name) VALUES ($1, $2) RETURNING id", project.team_id, project.name
                )
            except asyncpg.ForeignKeyViolationError:  # Team does not exist
                return None

    # Saved queries ----------------------------------------------------------------------------------------------------

    async def get_saved_query(self, saved_query_id: int) -> StoredSavedQueryModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow(
                f"SELECT {SAVED_QUERY_COLUMNS} FROM saved_queries WHERE id = $1", saved_query_id
            )
            return saved_query_db_deserialize(row)

    async def get_saved_queries_for_project(
        self, project_id: int, type_: str | None = None
    ) -> tuple[StoredSavedQueryModel, ...]:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            if type_:
                res = await conn.fetch(
                    f"SELECT {SAVED_QUERY_COLUMNS} FROM saved_queries WHERE project_id = $1 AND \"type\" = $2 "
                    "ORDER BY created DESC, id DESC",
                    project_id,
                    type_,
                )
            else:  # No filter (or an empty one): all saved queries in the project
                res = await conn.fetch(
                    f"SELECT {SAVED_QUERY_COLUMNS} FROM saved_queries WHERE project_id = $1 "
                    "ORDER BY created DESC, id DESC",
                    project_id,
                )
            return tuple(saved_query_db_deserialize(r) for r in res)

    async def create_saved_query(self, saved_query: SavedQueryModel) -> StoredSavedQueryModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow(
                f'INSERT INTO saved_queries (project_id, user_id, summary, "type") VALUES ($1, $2, $3, $4) '
                f"RETURNING {SAVED_QUERY_COLUMNS}",
                saved_query.project_id,
                saved_query.user_id,
                saved_query.summary,
                saved_query.type,
            )
            return saved_query_db_deserialize(row)

    async def update_saved_query(
        self, project_id: int, saved_query_id: int, summary: str
    ) -> StoredSavedQueryModel | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            row: asyncpg.Record | None = await conn.fetchrow(
                "UPDATE saved_queries SET summary = $3, updated = now() WHERE id = $2 AND project_id = $1 "
                f"RETURNING {SAVED_QUERY_COLUMNS}",
                project_id,
                saved_query_id,
                summary,
            )
            return saved_query_db_deserialize(row)

    async def delete_saved_query(self, project_id: int, saved_query_id: int) -> DeletionConfirmation | None:
        conn: asyncpg.Connection
        async with self.connect() as conn:
            id_: int | None = await conn.fetchval(
                "DELETE FROM saved_queries WHERE id = $2 AND project_id = $1 RETURNING id", project_id, saved_query_id
            )
            return None if id_ is None else DeletionConfirmation(id=id_)


@lru_cache()
def _db_for_uri(database_uri: str) -> Database:  # pragma: no cover
    return Database(database_uri)


def get_db(config: ConfigDependency) -> Database:  # pragma: no cover
    return _db_for_uri(config.database_uri)


DatabaseDependency = Annotated[Database, Depends(get_db)]

from fastapi import APIRouter, Query
from typing import Annotated

from ..authz import ActorDependency
from ..models import (
    DeletionConfirmation,
    SavedQueryCreateRequest,
    SavedQueryUpdateRequest,
    StoredSavedQueryModel,
)
from ..pipeline import PipelineDependency

__all__ = [
    "saved_queries_router",
]

saved_queries_router = APIRouter(prefix="/project/{project_id}/savedQuery")


@saved_queries_router.get("")
async def list_saved_queries(
    project_id: int,
    actor: ActorDependency,
    pipeline: PipelineDependency,
    type_: Annotated[str | None, Query(alias="type")] = None,
) -> list[StoredSavedQueryModel]:
    return list(await pipeline.list(project_id, actor, type_))


@saved_queries_router.post("")
async def create_saved_query(
    project_id: int,
    body: SavedQueryCreateRequest,
    actor: ActorDependency,
    pipeline: PipelineDependency,
) -> StoredSavedQueryModel:
    return await pipeline.create(project_id, actor, body.summary, body.type)


@saved_queries_router.put("/{saved_query_id}")
async def update_saved_query(
    project_id: int,
    saved_query_id: int,
    body: SavedQueryUpdateRequest,
    actor: ActorDependency,
    pipeline: PipelineDependency,
) -> StoredSavedQueryModel:
    return await pipeline.update(project_id, actor, saved_query_id, body.summary)


@saved_queries_router.delete("/{saved_query_id}")
async def remove_saved_query(
    project_id: int,
    saved_query_id: int,
    actor: ActorDependency,
    pipeline: PipelineDependency,
) -> DeletionConfirmation:
    return await pipeline.remove(project_id, actor, saved_query_id)

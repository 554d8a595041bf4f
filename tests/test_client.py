import pytest

from aiohttp import test_utils, web
from bento_lib.responses.errors import http_error
from datetime import datetime, timezone

from saved_query_service.client import ClientRequestError, ClientUnauthorized, SavedQueryClient
from saved_query_service.models import DeletionConfirmation, StoredSavedQueryModel

from . import shared_data as sd

TOKEN = "good-token"


def _saved_query_json(id_: int, summary: str, type_: str = "") -> dict:
    now = datetime.now(timezone.utc).isoformat()
    return {
        "id": id_,
        "project_id": sd.PROJECT_ID,
        "user_id": sd.SUB_EDITOR,
        "summary": summary,
        "type": type_,
        "created": now,
        "updated": now,
    }


def _make_api_app() -> tuple[web.Application, list[tuple[str, str, dict]]]:
    """
    Minimal stand-in for the saved query HTTP surface, enough to exercise the client: one project containing
    saved queries 1 and 2, with a bearer token check.
    """

    saved_queries = {1: _saved_query_json(1, "first", "variant"), 2: _saved_query_json(2, "second", "phenotype")}
    requests: list[tuple[str, str, dict]] = []

    @web.middleware
    async def check_token(request: web.Request, handler):
        requests.append((request.method, request.path, dict(request.query)))
        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return web.json_response(http_error(401, "Not authorized"), status=401)
        return await handler(request)

    async def list_(request: web.Request):
        type_ = request.query.get("type")
        return web.json_response([sq for sq in saved_queries.values() if not type_ or sq["type"] == type_])

    async def create(request: web.Request):
        body = await request.json()
        id_ = max(saved_queries, default=0) + 1
        saved_queries[id_] = _saved_query_json(id_, body["summary"], body.get("type", ""))
        return web.json_response(saved_queries[id_])

    async def update(request: web.Request):
        id_ = int(request.match_info["id"])
        if id_ not in saved_queries:
            return web.json_response(http_error(400, "not found"), status=400)
        saved_queries[id_] = {**saved_queries[id_], "summary": (await request.json())["summary"]}
        return web.json_response(saved_queries[id_])

    async def delete(request: web.Request):
        id_ = int(request.match_info["id"])
        if saved_queries.pop(id_, None) is None:
            return web.json_response(http_error(400, "not found"), status=400)
        return web.json_response({"id": id_, "removed": True})

    async def server_error(_request: web.Request):
        return web.Response(status=500, text="oops")

    app = web.Application(middlewares=[check_token])
    base = f"/project/{sd.PROJECT_ID}/savedQuery"
    app.router.add_get(base, list_)
    app.router.add_post(base, create)
    app.router.add_put(base + "/{id}", update)
    app.router.add_delete(base + "/{id}", delete)
    app.router.add_get("/project/500/savedQuery", server_error)
    return app, requests


@pytest.mark.asyncio
async def test_client_operations():
    api_app, requests = _make_api_app()
    server = test_utils.TestServer(api_app)
    await server.start_server()

    try:
        client = SavedQueryClient(str(server.make_url("/")), TOKEN)

        res = await client.list(sd.PROJECT_ID)
        assert [sq.id for sq in res] == [1, 2]
        assert all(isinstance(sq, StoredSavedQueryModel) for sq in res)

        res = await client.list(sd.PROJECT_ID, "variant")
        assert [sq.id for sq in res] == [1]
        assert requests[-1][2] == {"type": "variant"}

        created = await client.create(sd.PROJECT_ID, "third", "variant")
        assert created.id == 3
        assert created.summary == "third"

        updated = await client.update(sd.PROJECT_ID, 3, "renamed")
        assert updated.summary == "renamed"

        assert (await client.remove(sd.PROJECT_ID, 3)) == DeletionConfirmation(id=3)

        with pytest.raises(ClientRequestError) as e:
            await client.remove(sd.PROJECT_ID, 3)
        assert e.value.status == 400
        assert e.value.body["code"] == 400
        assert e.value.body["errors"] == [{"message": "not found"}]

        with pytest.raises(ClientRequestError) as e:
            await client.list(500)
        assert e.value.status == 500
        assert e.value.body == "oops"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_client_unauthorized():
    server = test_utils.TestServer(_make_api_app()[0])
    await server.start_server()

    try:
        client = SavedQueryClient(str(server.make_url("/")), "bad-token")
        with pytest.raises(ClientUnauthorized):
            await client.list(sd.PROJECT_ID)
        with pytest.raises(ClientUnauthorized):
            await client.create(sd.PROJECT_ID, "x")
    finally:
        await server.close()

import aiohttp

from typing import Protocol

from ..models import DeletionConfirmation, StoredSavedQueryModel

__all__ = [
    "ClientError",
    "ClientUnauthorized",
    "ClientRequestError",
    "SavedQueryApi",
    "SavedQueryClient",
]


class ClientError(Exception):
    pass


class ClientUnauthorized(ClientError):
    pass


class ClientRequestError(ClientError):
    def __init__(self, status: int, body: dict | str | None):
        super().__init__(f"Request failed with status {status}: {body}")
        self.status = status
        self.body = body


class SavedQueryApi(Protocol):
    async def list(self, project_id: int, type_: str | None = None) -> list[StoredSavedQueryModel]: ...

    async def create(self, project_id: int, summary: str, type_: str = "") -> StoredSavedQueryModel: ...

    async def update(self, project_id: int, saved_query_id: int, summary: str) -> StoredSavedQueryModel: ...

    async def remove(self, project_id: int, saved_query_id: int) -> DeletionConfirmation: ...


class SavedQueryClient:
    """
    HTTP client for the saved query endpoints. Requests are authenticated with a bearer token; a 401 response
    raises ClientUnauthorized and any other non-2xx response raises ClientRequestError.
    """

    def __init__(self, base_url: str, token: str, session: aiohttp.ClientSession | None = None):
        self._base_url: str = base_url.rstrip("/")
        self._token: str = token
        self._session: aiohttp.ClientSession | None = session

    def _url(self, project_id: int, saved_query_id: int | None = None) -> str:
        url = f"{self._base_url}/project/{project_id}/savedQuery"
        return url if saved_query_id is None else f"{url}/{saved_query_id}"

    async def _request(self, method: str, url: str, **kwargs) -> dict | list:
        headers = {"Authorization": f"Bearer {self._token}"}

        session = self._session or aiohttp.ClientSession()
        try:
            async with session.request(method, url, headers=headers, **kwargs) as res:
                if res.status == 401:
                    raise ClientUnauthorized("Not authorized")
                if not res.ok:
                    try:
                        body = await res.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        body = await res.text()
                    raise ClientRequestError(res.status, body)
                return await res.json()
        finally:
            if self._session is None:  # we made a one-off session for this request
                await session.close()

    async def list(self, project_id: int, type_: str | None = None) -> list[StoredSavedQueryModel]:
        params = {"type": type_} if type_ else None
        data = await self._request("GET", self._url(project_id), params=params)
        return [StoredSavedQueryModel.model_validate(sq) for sq in data]

    async def create(self, project_id: int, summary: str, type_: str = "") -> StoredSavedQueryModel:
        data = await self._request("POST", self._url(project_id), json={"summary": summary, "type": type_})
        return StoredSavedQueryModel.model_validate(data)

    async def update(self, project_id: int, saved_query_id: int, summary: str) -> StoredSavedQueryModel:
        data = await self._request("PUT", self._url(project_id, saved_query_id), json={"summary": summary})
        return StoredSavedQueryModel.model_validate(data)

    async def remove(self, project_id: int, saved_query_id: int) -> DeletionConfirmation:
        data = await self._request("DELETE", self._url(project_id, saved_query_id))
        return DeletionConfirmation.model_validate(data)

"""HTTP API client for a notevault server."""

import logging
from typing import Optional

import httpx

from .errors import NetworkError, ServerError, Unauthorized, VaultError, error_for_status
from .tree_model import TreeEntry, normalize_path

log = logging.getLogger(__name__)

INVALID_RESPONSE = "Invalid response from server."


def error_from_response(response: httpx.Response) -> VaultError:
    message = None
    try:
        data = response.json()
    except ValueError:
        data = response.text or None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
    elif isinstance(data, str) and data.strip():
        message = data.strip()
    return error_for_status(response.status_code, message)


def error_from_transport(exc: httpx.RequestError) -> VaultError:
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError("Request timed out. Please check your connection and try again.")
    if isinstance(exc, httpx.ConnectError):
        return NetworkError("Cannot connect to server. Please check if the backend server is running.")
    if isinstance(exc, httpx.DecodingError):
        return ServerError(INVALID_RESPONSE)
    return NetworkError()


class VaultClient:
    """Async HTTP client for the vault API with bearer-token auth."""

    def __init__(self, api_url: str, token: Optional[str] = None, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url, timeout=self.timeout, transport=self._transport)
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self._get_client().request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as exc:
            log.warning("%s %s failed: %s", method, path, exc)
            raise error_from_transport(exc) from exc
        if response.is_error:
            error = error_from_response(response)
            if isinstance(error, Unauthorized):
                self.token = None
            raise error
        return response

    async def _json(self, method: str, path: str, key: Optional[str] = None, **kwargs):
        """Request and decode a JSON body, optionally picking one field of an object."""
        response = await self._request(method, path, **kwargs)
        try:
            data = response.json()
            return data if key is None else data[key]
        except (ValueError, KeyError, TypeError) as exc:
            log.warning("%s %s returned an unexpected body: %s", method, path, exc)
            raise ServerError(INVALID_RESPONSE) from exc

    async def login(self, username: str, password: str) -> str:
        self.token = await self._json(
            "POST", "/api/login", "token", json={"username": username, "password": password})
        log.debug("obtained access token")
        return self.token

    def logout(self) -> None:
        self.token = None

    async def list_folder(self, path: str, depth: int = 1) -> list[TreeEntry]:
        items = await self._json(
            "GET", "/api/tree", params={"path": normalize_path(path), "depth": depth})
        try:
            return [TreeEntry.from_dict(item) for item in items]
        except (KeyError, TypeError, AttributeError) as exc:
            log.warning("malformed listing for %s: %r", path, exc)
            raise ServerError(INVALID_RESPONSE) from exc

    async def folder(self, path: str) -> dict:
        return await self._json("GET", "/api/folder", params={"path": path})

    async def read_file(self, path: str) -> str:
        return await self._json("GET", "/api/file", "content", params={"path": path})

    async def write_file(self, path: str, content: str) -> None:
        await self._request("PUT", "/api/file", json={"path": path, "content": content})

    async def create_file(self, path: str, content: str = "") -> str:
        return normalize_path(
            await self._json("POST", "/api/file", "path", json={"path": path, "content": content}))

    async def create_folder(self, path: str) -> str:
        return normalize_path(await self._json("POST", "/api/folder", "path", json={"path": path}))

    async def rename_entry(self, old_path: str, new_path: str) -> None:
        await self._request("POST", "/api/file/rename", json={"oldPath": old_path, "newPath": new_path})

    async def move_entry(self, source_path: str, destination_parent_path: str, new_name: str) -> None:
        await self._request("POST", "/api/file/move", json={
            "sourcePath": source_path,
            "destinationParentPath": destination_parent_path,
            "newName": new_name,
        })

    async def delete_entry(self, path: str) -> None:
        await self._request("DELETE", "/api/file", params={"path": path})

    async def toggle_checkbox(self, path: str, checkbox_text: str) -> bool:
        return await self._json(
            "POST", "/api/file/toggle-checkbox", "checked",
            json={"path": path, "checkboxText": checkbox_text})

    async def render_preview(self, path: str) -> str:
        return (await self._request("GET", "/api/preview", params={"path": path})).text

    async def read_markdown(self, path: str) -> str:
        return await self._json("GET", "/api/v2/preview", "markdown", params={"path": path})

    async def file_index(self) -> list[dict]:
        return await self._json("GET", "/api/file-index")

    async def get_vim_config(self) -> dict:
        return await self._json("GET", "/api/vimconfig")

    async def save_vim_config(self, config: dict) -> dict:
        return await self._json("POST", "/api/vimconfig", json=config)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

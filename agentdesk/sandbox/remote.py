"""Hosted sandbox provider, spoken to over its REST API."""

from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx

from .base import BaseSandboxProvider, VolumeEntry
from ..exceptions import SandboxError, SandboxNotFoundError, VolumeFileNotFoundError
from ..utils.logger import get_app_logger

T = TypeVar("T")


class HttpSandboxProvider(BaseSandboxProvider):
    """REST client for a hosted sandbox/volume provider."""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            api_url: Provider API base URL
            api_key: Provider API key, sent as X-API-Key
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        if not api_key:
            raise ValueError("SANDBOX_API_KEY environment variable is not set")

        self.logger = get_app_logger()
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"X-API-Key": api_key},
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        url: str,
        not_found: Type[SandboxError] = SandboxNotFoundError,
        **kwargs,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise SandboxError(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise not_found(f"{method} {url}: not found")
        if response.is_error:
            raise SandboxError(f"{method} {url} returned {response.status_code}: {response.text}")
        return response

    @staticmethod
    def _parse(response: httpx.Response, parse: Callable[[Any], T]) -> T:
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            request = response.request
            raise SandboxError(f"{request.method} {request.url.path}: malformed response ({e!r})") from e

    # === Volumes ===
    async def create_volume(self, name: str) -> str:
        response = await self._request("POST", "/volumes", json={"name": name})
        return self._parse(response, lambda body: body["volumeId"])

    async def delete_volume(self, volume_id: str) -> None:
        await self._request("DELETE", f"/volumes/{volume_id}")

    # === Sandboxes ===
    async def create_sandbox(
        self,
        template: str,
        volume_id: str,
        mount_path: str,
        envs: Dict[str, str],
        timeout: int,
    ) -> str:
        response = await self._request("POST", "/sandboxes", json={
            "templateId": template,
            "volumeId": volume_id,
            "volumeMountPath": mount_path,
            "envs": envs,
            "timeoutMs": timeout * 1000,
        })
        return self._parse(response, lambda body: body["sandboxId"])

    async def run_command(self, sandbox_id: str, cmd: str, cwd: str) -> int:
        response = await self._request("POST", f"/sandboxes/{sandbox_id}/commands", json={
            "cmd": cmd,
            "cwd": cwd,
            "background": True,
            "stdin": True,
        })
        return self._parse(response, lambda body: int(body["pid"]))

    async def send_stdin(self, sandbox_id: str, pid: int, data: str) -> None:
        await self._request("POST", f"/sandboxes/{sandbox_id}/commands/{pid}/stdin", json={"data": data})

    async def kill_sandbox(self, sandbox_id: str) -> None:
        await self._request("DELETE", f"/sandboxes/{sandbox_id}")

    # === Volume files ===
    async def list_files(self, volume_id: str, path: str) -> List[VolumeEntry]:
        response = await self._request(
            "GET", f"/volumes/{volume_id}/files",
            not_found=VolumeFileNotFoundError,
            params={"path": path},
        )
        return self._parse(response, lambda body: [
            VolumeEntry(
                name=f["name"],
                type=f["type"],
                path=f["path"],
                size=f.get("size"),
            )
            for f in body.get("files", [])
        ])

    async def download(self, volume_id: str, path: str) -> bytes:
        response = await self._request(
            "GET", f"/volumes/{volume_id}/files/download",
            not_found=VolumeFileNotFoundError,
            params={"path": path},
        )
        return response.content

    async def close(self) -> None:
        await self._client.aclose()

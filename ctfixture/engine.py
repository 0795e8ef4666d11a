"""Asynchronous access to the container engine.

EngineClient wraps the Docker SDK low-level APIClient. The SDK is blocking,
so every request runs in the event loop's default executor; streamed
responses (build events, exec output) are pulled one item per executor hop.
A single EngineClient is shared by every manager.
"""

import asyncio
import functools
import io
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterator, List, Optional

import docker
import requests
from docker.errors import DockerException, NotFound

from .errors import EngineError

DEFAULT_TIMEOUT = 60

_END = object()


def _engine_error(e: Exception) -> EngineError:
    status_code = getattr(e, "status_code", None)
    if status_code is None and isinstance(e, NotFound):
        status_code = 404
    explanation = getattr(e, "explanation", None)
    return EngineError(str(explanation or e), status_code=status_code)


class EngineClient:
    """Coroutine interface over a Docker APIClient."""

    def __init__(self, api: docker.APIClient) -> None:
        self.api = api

    @classmethod
    def from_env(
        cls, base_url: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT
    ) -> "EngineClient":
        """Connect using DOCKER_HOST and friends, or an explicit base_url."""
        try:
            kwargs = docker.utils.kwargs_from_env()
            if base_url:
                kwargs["base_url"] = base_url
            api = docker.APIClient(version="auto", timeout=timeout, **kwargs)
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _engine_error(e) from e
        logging.debug(f"Connected to container engine at {api.base_url}")
        return cls(api)

    async def _call(self, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(method, *args, **kwargs))
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _engine_error(e) from e

    async def _iterate(self, stream: Iterator[Any]) -> AsyncIterator[Any]:
        while True:
            item = await self._call(next, stream, _END)
            if item is _END:
                return
            yield item

    async def ping(self) -> bool:
        return await self._call(self.api.ping)

    async def list_containers(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self._call(self.api.containers, all=True, filters=filters)

    async def create_container(
        self, config: Dict[str, Any], host_config: Optional[Dict[str, Any]] = None
    ) -> str:
        try:
            host_config = self.api.create_host_config(**(host_config or {}))
        except DockerException as e:
            raise _engine_error(e) from e
        response = await self._call(self.api.create_container, host_config=host_config, **config)
        for warning in response.get("Warnings") or []:
            logging.warning(f"Container engine warning: {warning}")
        return response["Id"]

    async def start_container(self, container_id: str) -> None:
        await self._call(self.api.start, container_id)

    async def stop_container(self, container_id: str, timeout: int) -> None:
        await self._call(self.api.stop, container_id, timeout=timeout)

    async def restart_container(self, container_id: str, timeout: int) -> None:
        await self._call(self.api.restart, container_id, timeout=timeout)

    async def remove_container(self, container_id: str, force: bool = False) -> None:
        await self._call(self.api.remove_container, container_id, force=force)

    async def inspect_container(self, container_id: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_container, container_id)

    async def top(self, container_id: str) -> Dict[str, Any]:
        return await self._call(self.api.top, container_id)

    async def put_archive(self, container_id: str, path: str, archive: bytes) -> bool:
        return await self._call(self.api.put_archive, container_id, path, archive)

    async def create_exec(self, container_id: str, command: List[str]) -> str:
        response = await self._call(
            self.api.exec_create, container_id, command, stdout=True, stderr=True
        )
        return response["Id"]

    async def start_exec(self, exec_id: str) -> AsyncIterator[Any]:
        """Start an attached exec session, yielding (stdout, stderr) chunks."""
        stream = await self._call(self.api.exec_start, exec_id, stream=True, demux=True)
        async for chunk in self._iterate(stream):
            yield chunk

    async def start_exec_detached(self, exec_id: str) -> None:
        await self._call(self.api.exec_start, exec_id, detach=True)

    async def inspect_exec(self, exec_id: str) -> Dict[str, Any]:
        return await self._call(self.api.exec_inspect, exec_id)

    async def build_image(
        self, archive: bytes, tag: str, dockerfile: Optional[str] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """Build an image from a gzip build context, yielding build events."""
        stream = await self._call(
            self.api.build,
            fileobj=io.BytesIO(archive),
            custom_context=True,
            encoding="gzip",
            tag=tag,
            dockerfile=dockerfile,
            rm=True,
            decode=True,
        )
        async for event in self._iterate(stream):
            yield event

    async def inspect_image(self, image: str) -> Dict[str, Any]:
        return await self._call(self.api.inspect_image, image)

    def close(self) -> None:
        self.api.close()

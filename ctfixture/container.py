"""Container lifecycle management for integration tests.

This module provides ContainerManager, which drives containers through the
engine, and CleanupRegistry, which ensures test containers never outlive a
test run, including containers left behind by a run that crashed.

No container state is cached: every operation asks the engine.
"""

import logging
import shlex
import sys
import warnings
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from .backoff import Backoff
from .engine import EngineClient
from .errors import BackoffTimeoutError, EngineError, ExitCodeError, NotReadyError
from .options import TEST_LABEL, ContainerSpec

HEALTHY = "healthy"


class ContainerManager:
    """Creates, drives and inspects containers by engine id."""

    def __init__(self, engine: EngineClient, stop_timeout: int = 0) -> None:
        self.engine = engine
        self.stop_timeout = stop_timeout

    async def list_test_containers(self) -> List[Dict[str, Any]]:
        """List every test container, running or not."""
        return await self.engine.list_containers(filters={"label": [TEST_LABEL]})

    async def create(self, spec: ContainerSpec) -> str:
        """Create a container from `spec` and return its id.

        Raises:
            ConfigurationError: If the spec has no image
        """
        config, host_config = spec.build()
        logging.info(f"Create container with image {config['image']}")
        container_id = await self.engine.create_container(config, host_config)
        logging.debug(f"Created container {container_id}")
        return container_id

    async def start(self, container_id: str) -> None:
        logging.info(f"Start container with id {container_id}")
        await self.engine.start_container(container_id)

    async def stop(self, container_id: str, wait: Optional[int] = None) -> None:
        """Stop the container if the engine reports it running.

        Args:
            container_id: Container to stop
            wait: Seconds the engine waits before killing the container
        """
        info = await self.inspect(container_id)
        if not (info.get("State") or {}).get("Running"):
            logging.debug(f"Container {container_id} is not running, nothing to stop")
            return
        logging.info(f"Stop container with id {container_id}")
        await self.engine.stop_container(
            container_id, timeout=self.stop_timeout if wait is None else int(wait)
        )

    async def restart(self, container_id: str, wait: int = 0) -> None:
        logging.info(f"Restart container with id {container_id}")
        await self.engine.restart_container(container_id, timeout=int(wait))

    async def remove(self, container_id: str, force: bool = False) -> None:
        logging.info(f"Remove container with id {container_id}")
        await self.engine.remove_container(container_id, force=force)

    async def inspect(self, container_id: str) -> Dict[str, Any]:
        """Get the engine's full description of the container."""
        return await self.engine.inspect_container(container_id)

    async def clean(self, container_id: str, state: Dict[str, Any]) -> None:
        """Stop the container if `state` says it runs, then remove it."""
        logging.info(f"Clean container with id {container_id}")
        if state.get("Running"):
            await self.engine.stop_container(container_id, timeout=self.stop_timeout)
        await self.engine.remove_container(container_id, force=True)

    async def upload(self, container_id: str, path: str, archive: bytes) -> None:
        """Extract a tar archive into the container at `path`."""
        logging.debug(f"Upload archive to {container_id}:{path}")
        await self.engine.put_archive(container_id, path, archive)

    async def _health_status(self, container_id: str) -> None:
        try:
            info = await self.inspect(container_id)
        except EngineError as e:
            raise NotReadyError(f"Container {container_id} not ready: {e}") from e

        health = (info.get("State") or {}).get("Health")
        if not health:
            raise NotReadyError(f"Container {container_id} has no healthcheck")
        status = health.get("Status")
        if status != HEALTHY:
            raise NotReadyError(f"Container {container_id} not yet healthy (status: {status})")

    async def wait_healthy(self, container_id: str, backoff: Optional[Backoff] = None) -> None:
        """Poll the container until the engine reports it healthy.

        Raises:
            BackoffTimeoutError: If the container is not healthy before the
                backoff runs out of attempts
        """
        logging.info(f"Wait container with id {container_id} to be healthy")
        backoff = backoff or Backoff.default()
        try:
            await backoff.retry(lambda: self._health_status(container_id))
        except BackoffTimeoutError as e:
            raise BackoffTimeoutError(
                f"Container {container_id} did not become healthy: {e}"
            ) from e

    async def exec(
        self,
        container_id: str,
        command: Union[str, Sequence[str]],
        detach: bool = False,
        expected_exit_code: int = 0,
    ) -> List[str]:
        """Execute a command inside the container.

        Stderr output is written to this process' stderr as it arrives,
        stdout is collected.

        Args:
            container_id: Target container
            command: Argument list, or a string split with shell rules
            detach: Start the command without waiting for it
            expected_exit_code: Exit code the command must return

        Returns:
            Stdout split into stripped lines (empty when detached)

        Raises:
            ExitCodeError: If the command exits with another code
        """
        if isinstance(command, str):
            command = shlex.split(command)
        command = list(command)
        logging.debug(f"Exec in container {container_id}: {shlex.join(command)}")

        exec_id = await self.engine.create_exec(container_id, command)
        if detach:
            await self.engine.start_exec_detached(exec_id)
            return []

        stdout = []
        async for out, err in self.engine.start_exec(exec_id):
            if out:
                stdout.append(out)
            if err:
                print(err.decode("utf-8", errors="replace"), end="", file=sys.stderr)

        result = await self.engine.inspect_exec(exec_id)
        exit_code = result.get("ExitCode")
        if exit_code != expected_exit_code:
            raise ExitCodeError(exit_code, expected_exit_code)

        output = b"".join(stdout).decode("utf-8", errors="replace")
        return [line.strip() for line in output.splitlines()]

    async def top(self, container_id: str) -> Dict[str, str]:
        """Map each process command in the container to its pid."""
        result = await self.engine.top(container_id)
        titles = result.get("Titles") or []
        try:
            pid_index = titles.index("PID")
            cmd_index = titles.index("CMD") if "CMD" in titles else titles.index("COMMAND")
        except ValueError:
            raise EngineError(f"Unexpected process table columns: {titles}") from None

        return {
            process[cmd_index]: process[pid_index]
            for process in result.get("Processes") or []
        }


class CleanupRegistry:
    """Registry to ensure test containers are removed.

    On creation it sweeps containers left by earlier runs. Containers
    created during this run are registered and removed by cleanup_all().
    """

    def __init__(self, containers: ContainerManager) -> None:
        self.containers = containers
        self._tracked: Set[str] = set()
        self._cleaned_up = False

    @classmethod
    async def create(cls, containers: ContainerManager) -> "CleanupRegistry":
        registry = cls(containers)
        await registry.sweep()
        return registry

    async def sweep(self) -> int:
        """Stop and remove every test container the engine knows about.

        Containers that vanish between listing and inspection are skipped.

        Returns:
            Number of containers removed
        """
        removed = 0
        for summary in await self.containers.list_test_containers():
            container_id = summary["Id"]
            try:
                info = await self.containers.inspect(container_id)
            except EngineError as e:
                logging.warning(f"Skip cleaning container {container_id}: {e}")
                continue

            state = info.get("State")
            if not state:
                continue
            try:
                await self.containers.clean(container_id, state)
            except EngineError as e:
                logging.warning(f"Failed to clean container {container_id}: {e}")
                continue
            removed += 1
        return removed

    def register(self, container_id: str) -> None:
        """Register a container for cleanup."""
        self._tracked.add(container_id)
        self._cleaned_up = False

    def unregister(self, container_id: str) -> None:
        """Unregister a container (already cleaned up manually)."""
        self._tracked.discard(container_id)

    @property
    def tracked(self) -> Set[str]:
        return set(self._tracked)

    async def cleanup_all(self) -> None:
        """Clean up all registered containers."""
        if self._cleaned_up:
            return

        self._cleaned_up = True
        errors = []

        for container_id in sorted(self._tracked):
            try:
                info = await self.containers.inspect(container_id)
                await self.containers.clean(container_id, info.get("State") or {})
            except EngineError as e:
                if not e.not_found:
                    errors.append(f"{container_id}: {e}")

        self._tracked.clear()

        if errors:
            warnings.warn(f"Cleanup errors: {errors}")

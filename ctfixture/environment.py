"""Synchronous entry point for test fixtures.

FixtureEnvironment wires the engine client, the managers, the digest
registry and the cleanup registry together, and exposes blocking calls
that run on a shared Runtime.
"""

import atexit
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional, Sequence, Union

from .backoff import Backoff
from .config import FixtureConfig
from .container import CleanupRegistry, ContainerManager
from .digests import DigestRegistry
from .engine import EngineClient
from .image import ImageManager
from .options import ContainerSpec
from .runtime import Runtime


class FixtureEnvironment:
    """Everything a test run needs to provision containers.

    Use setup() to create one. teardown() removes the containers created
    through this environment and persists the image digests; it is also
    registered with atexit so an interrupted run still cleans up.
    """

    def __init__(
        self,
        config: FixtureConfig,
        engine: EngineClient,
        runtime: Runtime,
        digests: DigestRegistry,
    ) -> None:
        self.config = config
        self.engine = engine
        self.runtime = runtime
        self.digests = digests
        self.images = ImageManager(
            engine, excluded_filenames=(config.registry.digests_file,)
        )
        self.containers = ContainerManager(engine, stop_timeout=config.containers.stop_timeout)
        self.cleanup_registry = CleanupRegistry(self.containers)
        self._torn_down = False

    @classmethod
    def setup(
        cls,
        config: Optional[FixtureConfig] = None,
        engine: Optional[EngineClient] = None,
    ) -> "FixtureEnvironment":
        """Connect to the engine, load digests and sweep leftover containers."""
        config = config or FixtureConfig.load()
        engine = engine or EngineClient.from_env(config.engine.url, config.engine.timeout)
        digests = DigestRegistry.load(config.digests_path)
        runtime = Runtime()
        environment = cls(config, engine, runtime, digests)
        try:
            removed = environment.run(environment.cleanup_registry.sweep())
        except Exception:
            runtime.close()
            engine.close()
            raise
        if removed:
            logging.info(f"Removed {removed} containers left by a previous run")
        atexit.register(environment.teardown)
        return environment

    def run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Block until `coro` completes on the shared runtime."""
        return self.runtime.block_on(coro)

    def build_image(
        self,
        directory: Path,
        name: str,
        tag: str = "latest",
        dockerfile: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        """Build `name:tag` unless the registry says the context is unchanged.

        Returns:
            True if the image was built, False if the build was skipped
        """
        context = self.run(self.images.context(directory))
        if not force and not self.digests.is_build_needed(name, context.digest):
            logging.info(f"Skip build container image: {name}:{tag}")
            return False
        self.run(self.images.build(directory, name, tag, dockerfile=dockerfile, context=context))
        self.digests.push(name, context.digest)
        return True

    def create_container(self, spec: ContainerSpec) -> str:
        container_id = self.run(self.containers.create(spec))
        self.cleanup_registry.register(container_id)
        return container_id

    def start_container(
        self, spec: ContainerSpec, wait_healthy: bool = False
    ) -> str:
        """Create and start a container, optionally waiting until healthy."""
        container_id = self.create_container(spec)
        self.run(self.containers.start(container_id))
        if wait_healthy:
            self.wait_healthy(container_id)
        return container_id

    def wait_healthy(self, container_id: str, backoff: Optional[Backoff] = None) -> None:
        self.run(
            self.containers.wait_healthy(container_id, backoff or self.config.health.backoff())
        )

    def stop_container(self, container_id: str, wait: Optional[int] = None) -> None:
        self.run(self.containers.stop(container_id, wait))

    def restart_container(self, container_id: str, wait: int = 0) -> None:
        self.run(self.containers.restart(container_id, wait))

    def remove_container(self, container_id: str) -> None:
        self.run(self.containers.stop(container_id))
        self.run(self.containers.remove(container_id))
        self.cleanup_registry.unregister(container_id)

    def inspect_container(self, container_id: str) -> Dict[str, Any]:
        return self.run(self.containers.inspect(container_id))

    def exec(
        self,
        container_id: str,
        command: Union[str, Sequence[str]],
        detach: bool = False,
        expected_exit_code: int = 0,
    ) -> List[str]:
        return self.run(
            self.containers.exec(container_id, command, detach, expected_exit_code)
        )

    def top(self, container_id: str) -> Dict[str, str]:
        return self.run(self.containers.top(container_id))

    def upload(self, container_id: str, path: str, archive: bytes) -> None:
        self.run(self.containers.upload(container_id, path, archive))

    def teardown(self) -> None:
        """Remove tracked containers and persist image digests."""
        if self._torn_down:
            return
        self._torn_down = True
        atexit.unregister(self.teardown)
        try:
            self.run(self.cleanup_registry.cleanup_all())
        finally:
            self.digests.persist()
            self.runtime.close()
            self.engine.close()

    def __enter__(self) -> "FixtureEnvironment":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.teardown()
        return False  # Don't suppress exceptions

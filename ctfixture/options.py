"""Container creation options.

ContainerSpec is an immutable value: every with_* method returns a new spec,
so a base spec can be shared between fixtures and specialised per test.
"""

import dataclasses
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ConfigurationError
from .size import Size

TEST_LABEL_KEY = "test.container"
TEST_LABEL_VALUE = "true"
TEST_LABEL = f"{TEST_LABEL_KEY}={TEST_LABEL_VALUE}"

NANO_CPUS = 1_000_000_000
NANOSECONDS = 1_000_000_000


def _with_item(mapping: Mapping[str, str], key: str, value: str) -> Mapping[str, str]:
    updated = dict(mapping)
    updated[key] = value
    return MappingProxyType(updated)


@dataclass(frozen=True)
class ContainerSpec:
    """Options used to create a test container."""

    image: Optional[str] = None
    environment: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    volumes: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    labels: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    entrypoint: Tuple[str, ...] = ()
    healthcheck: Tuple[str, ...] = ()
    healthcheck_interval: Optional[float] = None
    cpus: Optional[float] = None
    memory: Optional[Size] = None
    memory_swap: Optional[Size] = None

    def with_image(self, image: str) -> "ContainerSpec":
        return dataclasses.replace(self, image=image)

    def with_environment(self, key: str, value: str) -> "ContainerSpec":
        return dataclasses.replace(
            self, environment=_with_item(self.environment, key, str(value))
        )

    def with_volume(self, host_path: str, container_path: str) -> "ContainerSpec":
        """Bind mount host_path (or a named volume) at container_path."""
        return dataclasses.replace(
            self, volumes=_with_item(self.volumes, str(host_path), str(container_path))
        )

    def with_label(self, key: str, value: str) -> "ContainerSpec":
        return dataclasses.replace(self, labels=_with_item(self.labels, key, str(value)))

    def with_entrypoint(self, value: str) -> "ContainerSpec":
        """Append whitespace separated tokens to the entrypoint."""
        return dataclasses.replace(self, entrypoint=self.entrypoint + tuple(value.split()))

    def with_healthcheck_command(self, *command: str) -> "ContainerSpec":
        """Healthcheck run as an exact argument list (CMD form)."""
        if not command:
            raise ConfigurationError("Healthcheck command cannot be empty")
        return dataclasses.replace(self, healthcheck=("CMD",) + tuple(command))

    def with_healthcheck_command_shell(self, script: str) -> "ContainerSpec":
        """Healthcheck run by the container's shell (CMD-SHELL form)."""
        if not script:
            raise ConfigurationError("Healthcheck command cannot be empty")
        return dataclasses.replace(self, healthcheck=("CMD-SHELL", script))

    def with_healthcheck_interval(self, seconds: float) -> "ContainerSpec":
        """Time between healthcheck runs (engine default is 30s)."""
        if seconds <= 0:
            raise ConfigurationError(f"Healthcheck interval must be positive: {seconds}")
        return dataclasses.replace(self, healthcheck_interval=float(seconds))

    def with_cpus(self, cpus: float) -> "ContainerSpec":
        if cpus <= 0:
            raise ConfigurationError(f"CPU quota must be positive: {cpus}")
        return dataclasses.replace(self, cpus=float(cpus))

    def with_memory(self, memory: Union[Size, str, int]) -> "ContainerSpec":
        return dataclasses.replace(self, memory=Size.coerce(memory))

    def with_memory_swap(self, memory_swap: Union[Size, str, int]) -> "ContainerSpec":
        return dataclasses.replace(self, memory_swap=Size.coerce(memory_swap))

    def build(self) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Validate the spec and produce engine create arguments.

        The test label is always added so leftover containers can be found
        and removed by a later run.

        Returns:
            (config, host_config): keyword arguments for container creation
            and for the host configuration

        Raises:
            ConfigurationError: If no image was set
        """
        if not self.image:
            raise ConfigurationError("Image is required")

        labels = dict(self.labels)
        labels[TEST_LABEL_KEY] = TEST_LABEL_VALUE

        config: Dict[str, Any] = {"image": self.image, "labels": labels}
        if self.environment:
            config["environment"] = [f"{k}={v}" for k, v in self.environment.items()]
        if self.entrypoint:
            config["entrypoint"] = list(self.entrypoint)
        if self.healthcheck:
            config["healthcheck"] = {"test": list(self.healthcheck)}
            if self.healthcheck_interval is not None:
                config["healthcheck"]["interval"] = int(self.healthcheck_interval * NANOSECONDS)

        host_config: Dict[str, Any] = {}
        if self.volumes:
            host_config["binds"] = [f"{k}:{v}" for k, v in self.volumes.items()]
        if self.cpus is not None:
            host_config["nano_cpus"] = int(NANO_CPUS * self.cpus)
        if self.memory is not None:
            host_config["mem_limit"] = self.memory.to_bytes()
        if self.memory_swap is not None:
            host_config["memswap_limit"] = self.memory_swap.to_bytes()

        return config, host_config

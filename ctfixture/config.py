"""Configuration loading for ctfixture.

Settings come from a `.ctfixture.toml` file found by searching upward from
the project directory, or from explicitly given files. Missing settings
fall back to built-in defaults.
"""

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .backoff import DEFAULT_ATTEMPTS, DEFAULT_WAIT, Backoff
from .digests import DIGESTS_FILENAME
from .engine import DEFAULT_TIMEOUT
from .errors import ConfigurationError

CONFIG_FILENAME = ".ctfixture.toml"
DEFAULT_CONTAINERS_DIR = ".containers"


def _load_config_file(config_path: Path) -> Dict[str, Any]:
    """Load and parse TOML configuration file."""
    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
        logging.debug(f"Loaded config from {config_path}")
        return config_data
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error reading {config_path}: {e}") from e


def find_project_config(start_dir: Path) -> Optional[Path]:
    """Find project configuration path (searched upward from start_dir)."""
    current = Path(start_dir).resolve()
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


@dataclass(kw_only=True)
class EngineSettings:
    url: Optional[str] = None  # None = DOCKER_HOST or the engine default
    timeout: int = DEFAULT_TIMEOUT


@dataclass(kw_only=True)
class RegistrySettings:
    directory: Path = Path(DEFAULT_CONTAINERS_DIR)
    digests_file: str = DIGESTS_FILENAME


@dataclass(kw_only=True)
class HealthSettings:
    attempts: int = DEFAULT_ATTEMPTS
    initial_wait: float = DEFAULT_WAIT
    maximum_wait: float = DEFAULT_WAIT

    def __post_init__(self) -> None:
        # Reject values Backoff would refuse before any container is waited on
        self.backoff()

    def backoff(self) -> Backoff:
        return Backoff(self.attempts, self.initial_wait, self.maximum_wait)


@dataclass(kw_only=True)
class ContainerSettings:
    stop_timeout: int = 0


_EXPECTED_TYPES = {
    int: (int,),
    float: (int, float),
    Path: (str,),
    str: (str,),
    Optional[str]: (str,),
}


def _section(cls, raw: Any, section: str, base_dir: Path):
    """Build a settings dataclass from a TOML table, ignoring unknown keys."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{section}] must be a table")

    values = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        value = raw[f.name]
        expected = _EXPECTED_TYPES[f.type]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigurationError(
                f"Invalid value for {section}.{f.name}: {value!r}"
            )
        if f.type is Path:
            value = Path(value).expanduser()
            if not value.is_absolute():
                value = base_dir / value
        values[f.name] = value
    try:
        return cls(**values)
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid [{section}] settings: {e}") from e


@dataclass(kw_only=True)
class FixtureConfig:
    """Computed ctfixture configuration."""

    project_dir: Path
    engine: EngineSettings = field(default_factory=EngineSettings)
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    health: HealthSettings = field(default_factory=HealthSettings)
    containers: ContainerSettings = field(default_factory=ContainerSettings)
    path: Optional[Path] = None  # None when only built-in defaults apply

    @property
    def containers_dir(self) -> Path:
        directory = self.registry.directory
        return directory if directory.is_absolute() else self.project_dir / directory

    @property
    def digests_path(self) -> Path:
        return self.containers_dir / self.registry.digests_file

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_dir: Path, path: Optional[Path] = None):
        base_dir = path.parent if path else project_dir
        return cls(
            project_dir=project_dir,
            engine=_section(EngineSettings, data.get("engine"), "engine", base_dir),
            registry=_section(RegistrySettings, data.get("registry"), "registry", base_dir),
            health=_section(HealthSettings, data.get("health"), "health", base_dir),
            containers=_section(ContainerSettings, data.get("containers"), "containers", base_dir),
            path=path,
        )

    @classmethod
    def load(
        cls,
        project_dir: Optional[Path] = None,
        explicit_config_files: Optional[List[Path]] = None,
    ) -> "FixtureConfig":
        """Load configuration for project_dir.

        Explicit config files are merged in order, later files winning per
        key. Without explicit files the project config is searched upward
        from project_dir.
        """
        project_dir = Path(project_dir or Path.cwd()).resolve()

        if explicit_config_files:
            config_paths = [Path(p) for p in explicit_config_files]
            for config_path in config_paths:
                if not config_path.exists():
                    raise ConfigurationError(f"Config file not found: {config_path}")
        else:
            found = find_project_config(project_dir)
            config_paths = [found] if found else []

        if not config_paths:
            logging.debug("No config file found, using defaults")
            return cls(project_dir=project_dir)

        data: Dict[str, Any] = {}
        for config_path in config_paths:
            for section, values in _load_config_file(config_path).items():
                if isinstance(values, dict) and isinstance(data.get(section), dict):
                    data[section] = {**data[section], **values}
                else:
                    data[section] = values

        last = config_paths[-1].resolve()
        if not explicit_config_files:
            project_dir = last.parent
        return cls.from_dict(data, project_dir, path=last)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": {"url": self.engine.url, "timeout": self.engine.timeout},
            "registry": {
                "directory": str(self.containers_dir),
                "digests_file": self.registry.digests_file,
            },
            "health": {
                "attempts": self.health.attempts,
                "initial_wait": self.health.initial_wait,
                "maximum_wait": self.health.maximum_wait,
            },
            "containers": {"stop_timeout": self.containers.stop_timeout},
        }

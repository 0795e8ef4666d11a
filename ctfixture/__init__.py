"""ctfixture - Ephemeral containers for integration tests"""

from .version import __version__
from .backoff import Backoff
from .config import FixtureConfig
from .container import CleanupRegistry, ContainerManager
from .context import BuildContext, create_build_context
from .digests import DigestRegistry
from .engine import EngineClient
from .environment import FixtureEnvironment
from .errors import (
    BackoffTimeoutError,
    BuildError,
    ConfigurationError,
    ContainerError,
    EngineError,
    ExitCodeError,
    NotReadyError,
)
from .image import ImageManager
from .options import TEST_LABEL, ContainerSpec
from .runtime import Runtime
from .size import Size

__all__ = [
    "__version__",
    "Backoff",
    "BackoffTimeoutError",
    "BuildContext",
    "BuildError",
    "CleanupRegistry",
    "ConfigurationError",
    "ContainerError",
    "ContainerManager",
    "ContainerSpec",
    "DigestRegistry",
    "EngineClient",
    "EngineError",
    "ExitCodeError",
    "FixtureConfig",
    "FixtureEnvironment",
    "ImageManager",
    "NotReadyError",
    "Runtime",
    "Size",
    "TEST_LABEL",
    "create_build_context",
]

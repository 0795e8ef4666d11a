"""Pytest fixtures for container integration tests.

These fixtures provide:
- Configuration loaded from the test session's root directory
- A session-wide FixtureEnvironment, skipped when no engine is reachable
"""

import pytest
import requests
from docker.errors import DockerException

from .config import FixtureConfig
from .engine import EngineClient
from .environment import FixtureEnvironment
from .errors import EngineError


@pytest.fixture(scope="session")
def ctfixture_config(request):
    """Configuration for the project the tests run in."""
    return FixtureConfig.load(request.config.rootpath)


def connect_engine(config):
    """Connect to the configured engine.

    Raises:
        EngineError: If the engine cannot be reached
    """
    engine = EngineClient.from_env(config.engine.url, config.engine.timeout)
    try:
        engine.api.ping()
    except (DockerException, requests.exceptions.RequestException) as e:
        engine.close()
        raise EngineError(f"Ping failed: {e}") from e
    return engine


@pytest.fixture(scope="session")
def container_environment(ctfixture_config):
    """Provide a FixtureEnvironment for the whole session.

    Containers created through it are removed and image digests persisted
    after the last test, even if tests fail.
    """
    try:
        engine = connect_engine(ctfixture_config)
    except EngineError as e:
        pytest.skip(f"Container engine not available: {e}")

    environment = FixtureEnvironment.setup(ctfixture_config, engine=engine)
    yield environment
    environment.teardown()

import asyncio
from unittest.mock import MagicMock

import docker
import pytest

from ctfixture.engine import EngineClient


@pytest.fixture
def api():
    """Mock Docker APIClient with the same method surface as the real one."""
    api = MagicMock(spec=docker.APIClient)
    api.base_url = "http+docker://localhost"
    api.create_host_config.side_effect = lambda **kwargs: dict(kwargs)
    return api


@pytest.fixture
def engine(api):
    return EngineClient(api)


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


@pytest.fixture
def build_dir(tmp_path):
    """Create a small build directory with a nested file."""
    directory = tmp_path / "server"
    directory.mkdir()
    (directory / "Dockerfile").write_text("FROM alpine:3.19\nCOPY entrypoint.sh /\n")
    (directory / "entrypoint.sh").write_text("#!/bin/sh\nexec sleep infinity\n")
    (directory / "entrypoint.sh").chmod(0o755)
    (directory / "config").mkdir()
    (directory / "config" / "server.conf").write_text("rate = 48000\n")
    return directory


def inspect_result(running=True, health=None):
    """Build a container inspect payload."""
    state = {"Running": running, "Status": "running" if running else "exited"}
    if health is not None:
        state["Health"] = {"Status": health}
    return {"Id": "abc123", "State": state}

"""Pytest fixtures for container engine tests.

These fixtures provide:
- A configuration rooted in a temporary project directory
- A build directory for a small test image

The container_environment fixture itself comes from the ctfixture pytest
plugin and skips these tests when no engine is reachable.
"""

import pytest

from ctfixture.config import FixtureConfig

TEST_IMAGE = "ctfixture-e2e"


@pytest.fixture(scope="session")
def ctfixture_config(tmp_path_factory):
    """Keep the digest registry out of the source tree."""
    project_dir = tmp_path_factory.mktemp("project")
    (project_dir / ".ctfixture.toml").write_text(
        """
[health]
attempts = 100
initial_wait = 0.1
maximum_wait = 1.0
"""
    )
    return FixtureConfig.load(project_dir)


@pytest.fixture(scope="session")
def image_dir(ctfixture_config):
    directory = ctfixture_config.containers_dir / TEST_IMAGE
    directory.mkdir(parents=True)
    (directory / "Dockerfile").write_text(
        "FROM alpine:3.19\n"
        "COPY hello.txt /srv/hello.txt\n"
        'CMD ["sleep", "infinity"]\n'
    )
    (directory / "hello.txt").write_text("hello\n")
    return directory


@pytest.fixture(scope="session")
def test_image(container_environment, image_dir):
    container_environment.build_image(image_dir, TEST_IMAGE)
    return TEST_IMAGE

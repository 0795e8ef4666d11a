import tempfile
from pathlib import Path

import pytest

from ctfixture.config import CONFIG_FILENAME, FixtureConfig, find_project_config
from ctfixture.errors import ConfigurationError


@pytest.mark.unit
def test_defaults_without_config_file():
    """Test built-in defaults when no config file exists."""
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir).resolve()

        config = FixtureConfig.load(tmpdir)

        assert config.path is None
        assert config.engine.url is None
        assert config.engine.timeout == 60
        assert config.health.attempts == 300
        assert config.containers.stop_timeout == 0
        assert config.digests_path == tmpdir / ".containers" / ".digests"


@pytest.mark.unit
def test_find_project_config_from_subdirectory():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir).resolve()
        config_file = tmpdir / CONFIG_FILENAME
        config_file.write_text("[engine]\ntimeout = 5\n")

        subdir = tmpdir / "tests" / "integration"
        subdir.mkdir(parents=True)

        assert find_project_config(subdir) == config_file

        config = FixtureConfig.load(subdir)
        assert config.path == config_file
        assert config.project_dir == tmpdir
        assert config.engine.timeout == 5


@pytest.mark.unit
def test_config_values_and_relative_directory():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir).resolve()
        (tmpdir / CONFIG_FILENAME).write_text(
            """
[engine]
url = "unix:///run/docker.sock"

[registry]
directory = "test-utils/.containers"
digests_file = "digests.txt"

[health]
attempts = 20
initial_wait = 0.05
maximum_wait = 0.4

[containers]
stop_timeout = 2
unknown = "ignored"
"""
        )

        config = FixtureConfig.load(tmpdir)

        assert config.engine.url == "unix:///run/docker.sock"
        assert config.digests_path == tmpdir / "test-utils" / ".containers" / "digests.txt"
        assert config.containers.stop_timeout == 2

        backoff = config.health.backoff()
        assert backoff.maximum_attempts == 20
        assert backoff.initial_wait == 0.05
        assert backoff.maximum_wait == 0.4


@pytest.mark.unit
def test_explicit_config_files_merge_in_order():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir).resolve()
        first = tmpdir / "first.toml"
        first.write_text("[engine]\ntimeout = 5\nurl = \"tcp://first:2375\"\n")
        second = tmpdir / "second.toml"
        second.write_text("[engine]\ntimeout = 9\n")

        config = FixtureConfig.load(tmpdir, explicit_config_files=[first, second])

        assert config.engine.timeout == 9
        assert config.engine.url == "tcp://first:2375"
        assert config.path == second


@pytest.mark.unit
def test_missing_explicit_config_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigurationError, match="Config file not found"):
            FixtureConfig.load(Path(tmpdir), explicit_config_files=[Path(tmpdir) / "nope.toml"])


@pytest.mark.unit
def test_invalid_toml():
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        (tmpdir / CONFIG_FILENAME).write_text("[engine\n")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            FixtureConfig.load(tmpdir)


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        '[engine]\ntimeout = "soon"\n',
        "[health]\nattempts = true\n",
        'engine = "docker"\n',
    ],
)
def test_invalid_values(content):
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        (tmpdir / CONFIG_FILENAME).write_text(content)
        with pytest.raises(ConfigurationError):
            FixtureConfig.load(tmpdir)


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "[health]\ninitial_wait = 2.0\nmaximum_wait = 1.0\n",
        "[health]\nattempts = -1\n",
    ],
)
def test_invalid_health_settings_rejected_on_load(content):
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        (tmpdir / CONFIG_FILENAME).write_text(content)
        with pytest.raises(ConfigurationError, match=r"Invalid \[health\] settings"):
            FixtureConfig.load(tmpdir)

"""Tests for FixtureEnvironment, the synchronous fixture entry point."""

import pytest
from docker.errors import APIError

from ctfixture.config import FixtureConfig, RegistrySettings
from ctfixture.digests import DigestRegistry
from ctfixture.environment import FixtureEnvironment
from ctfixture.errors import EngineError
from ctfixture.options import ContainerSpec

from .conftest import inspect_result


@pytest.fixture
def config(tmp_path):
    return FixtureConfig(project_dir=tmp_path)


@pytest.fixture
def environment(config, engine, api):
    api.containers.return_value = []
    environment = FixtureEnvironment.setup(config, engine=engine)
    yield environment
    environment.teardown()


@pytest.mark.unit
class TestSetup:
    def test_setup_sweeps_leftover_containers(self, config, engine, api):
        api.containers.return_value = [{"Id": "old"}]
        api.inspect_container.return_value = inspect_result(running=True)

        with FixtureEnvironment.setup(config, engine=engine):
            api.stop.assert_called_once_with("old", timeout=0)
            api.remove_container.assert_called_once_with("old", force=True)

    def test_setup_loads_digests(self, config, engine, api):
        config.digests_path.parent.mkdir(parents=True)
        config.digests_path.write_text("server=sha256:aa\n")
        api.containers.return_value = []

        with FixtureEnvironment.setup(config, engine=engine) as environment:
            assert environment.digests.get("server") == "sha256:aa"

    def test_failed_sweep_closes_engine(self, config, engine, api):
        api.containers.side_effect = APIError("engine unavailable")

        with pytest.raises(EngineError):
            FixtureEnvironment.setup(config, engine=engine)

        api.close.assert_called_once()


@pytest.mark.unit
class TestBuildImage:
    def test_first_build_runs_and_persists(self, config, engine, api, build_dir):
        api.containers.return_value = []
        api.build.return_value = iter([{"stream": "Successfully built 1234\n"}])

        with FixtureEnvironment.setup(config, engine=engine) as environment:
            assert environment.build_image(build_dir, "server") is True

        registry = DigestRegistry.load(config.digests_path)
        assert not registry.is_build_needed("server", environment.digests.get("server"))
        api.build.assert_called_once()

    def test_unchanged_context_is_skipped(self, environment, api, build_dir):
        api.build.side_effect = lambda **kwargs: iter([])

        assert environment.build_image(build_dir, "server") is True
        assert environment.build_image(build_dir, "server") is False
        assert api.build.call_count == 1

    def test_changed_context_is_rebuilt(self, environment, api, build_dir):
        api.build.side_effect = lambda **kwargs: iter([])

        environment.build_image(build_dir, "server")
        (build_dir / "Dockerfile").write_text("FROM alpine:3.20\n")

        assert environment.build_image(build_dir, "server") is True
        assert api.build.call_count == 2

    def test_force_rebuilds(self, environment, api, build_dir):
        api.build.side_effect = lambda **kwargs: iter([])

        environment.build_image(build_dir, "server")
        assert environment.build_image(build_dir, "server", force=True) is True
        assert api.build.call_count == 2

    def test_custom_digests_file_is_not_part_of_the_context(self, tmp_path, engine, api, build_dir):
        config = FixtureConfig(
            project_dir=tmp_path,
            registry=RegistrySettings(directory=build_dir, digests_file="digests.txt"),
        )
        api.containers.return_value = []
        api.build.side_effect = lambda **kwargs: iter([])

        with FixtureEnvironment.setup(config, engine=engine) as environment:
            digest = environment.run(environment.images.context(build_dir)).digest
            assert environment.build_image(build_dir, "server") is True
            environment.digests.persist()
            assert (build_dir / "digests.txt").exists()

            assert environment.run(environment.images.context(build_dir)).digest == digest
            assert environment.build_image(build_dir, "server") is False
        assert api.build.call_count == 1


@pytest.mark.unit
class TestContainers:
    def test_created_containers_are_removed_at_teardown(self, config, engine, api):
        api.containers.return_value = []
        api.create_container.return_value = {"Id": "abc123"}
        api.inspect_container.return_value = inspect_result(running=True, health="healthy")

        environment = FixtureEnvironment.setup(config, engine=engine)
        container_id = environment.start_container(
            ContainerSpec().with_image("server:latest"), wait_healthy=True
        )
        assert container_id == "abc123"
        api.start.assert_called_once_with("abc123")

        environment.teardown()

        api.remove_container.assert_called_once_with("abc123", force=True)
        assert config.digests_path.exists()

    def test_remove_container_unregisters(self, environment, api):
        api.create_container.return_value = {"Id": "abc123"}
        api.inspect_container.return_value = inspect_result(running=False)

        container_id = environment.create_container(ContainerSpec(image="alpine"))
        environment.remove_container(container_id)

        assert environment.cleanup_registry.tracked == set()

    def test_exec_and_top(self, environment, api):
        api.exec_create.return_value = {"Id": "exec1"}
        api.exec_start.return_value = iter([(b"hello\n", None)])
        api.exec_inspect.return_value = {"ExitCode": 0}
        api.top.return_value = {"Titles": ["PID", "CMD"], "Processes": [["7", "sleep"]]}

        assert environment.exec("abc123", ["echo", "hello"]) == ["hello"]
        assert environment.top("abc123") == {"sleep": "7"}

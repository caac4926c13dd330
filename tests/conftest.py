"""Pytest configuration and shared fixtures."""

import threading
from unittest.mock import MagicMock

import pytest

from converge.config.schema import ConvergeConfig


@pytest.fixture
def default_config() -> ConvergeConfig:
    """Provide a default configuration for tests."""
    return ConvergeConfig()


@pytest.fixture
def custom_config() -> ConvergeConfig:
    """Provide a custom configuration for tests."""
    config = ConvergeConfig()
    config.provider.name = "anthropic"
    config.agent.max_iterations = 3
    config.tools.pipeline.enabled = False
    return config


@pytest.fixture
def make_container():
    """Factory for mock docker containers.

    ``wait`` blocks until the container is removed when ``hang`` is set,
    the way a real container keeps running until it is killed.
    """

    def factory(stdout: bytes = b"", stderr: bytes = b"", status_code: int = 0, hang: bool = False):
        released = threading.Event()

        def wait():
            if hang:
                released.wait(10)
            return {"StatusCode": 137 if hang else status_code}

        container = MagicMock()
        container.id = "c0ffee"
        container.wait = MagicMock(side_effect=wait)
        streams = {"stdout": stdout, "stderr": stderr}
        container.logs = MagicMock(
            side_effect=lambda stdout=True, stderr=True: streams["stdout" if stdout else "stderr"]
        )
        container.remove = MagicMock(side_effect=lambda force=False: released.set())
        return container

    return factory


@pytest.fixture
def docker_client():
    """Mock docker client; set ``containers.create.return_value`` per test."""
    client = MagicMock()
    client.containers.create = MagicMock()
    return client

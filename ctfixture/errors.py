"""Error types raised by ctfixture.

The hierarchy separates failures that may be retried (NotReadyError) from
the ones that must abort a test run immediately.
"""

from typing import Optional


class ContainerError(RuntimeError):
    """Base class for every ctfixture failure."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


class EngineError(ContainerError):
    """The container engine could not be reached or rejected a request."""

    def __init__(self, description: str, status_code: Optional[int] = None) -> None:
        super().__init__(description)
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class ConfigurationError(ContainerError, ValueError):
    """Invalid or incomplete configuration (missing image, bad size unit, ...)."""


class NotReadyError(ContainerError):
    """A container has not reached the expected state yet."""


class BackoffTimeoutError(ContainerError, TimeoutError):
    """A retry loop ran out of attempts."""


class ExitCodeError(ContainerError):
    """A command executed in a container exited with an unexpected code."""

    def __init__(self, exit_code: Optional[int], expected_exit_code: int) -> None:
        super().__init__(
            f"Unexpected exit code: {exit_code} (expected {expected_exit_code})"
        )
        self.exit_code = exit_code
        self.expected_exit_code = expected_exit_code


class BuildError(ContainerError):
    """An image build context could not be assembled or the build failed."""

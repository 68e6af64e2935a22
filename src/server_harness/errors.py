from __future__ import annotations


class HarnessError(RuntimeError):
    # Base error for server/deployment lifecycle orchestration.
    pass


class ConfigurationError(HarnessError):
    # Caller misconfiguration: always fatal, never retried.
    pass


class StartupError(HarnessError):
    # Raised when the shared server cannot be launched.
    pass


class StartupTimeoutError(StartupError):
    # Raised when the shared server did not become ready in time; the handle has been killed.
    pass


class DeploymentFailureError(HarnessError):
    # Raised when a group's artifact could not be deployed; fatal for the owning group only.
    pass


class InjectionError(HarnessError):
    # Raised when a server resource cannot be produced for a field or parameter.
    pass


class UndeployWarning(RuntimeWarning):
    # Undeploy failures are reported, never raised.
    pass

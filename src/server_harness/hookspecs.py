from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from server_harness.server.launcher import ServerLauncher


@pytest.hookspec(firstresult=True)
def pytest_server_harness_launcher(config: pytest.Config) -> ServerLauncher | None:
    """Return the launcher that creates the shared server handle.

    The first non-None result wins. Without one, every server test class
    errors with a ConfigurationError.
    """


@pytest.hookspec
def pytest_server_harness_overrides(config: pytest.Config) -> dict[str, str] | None:
    """Return setting overrides; they take priority over parameters and environment."""

"""Route test configuration: slowapi rate limiting switched off."""

from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi so repeated calls within one test never hit a limit."""
    with patch("core.ratelimit.limiter.enabled", False):
        yield

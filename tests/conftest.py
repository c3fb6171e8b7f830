from unittest.mock import AsyncMock, patch

import pytest

from contractor_ai.core.config import settings

# Override settings for tests
settings.app_env = "development"
settings.log_json = False


@pytest.fixture
def no_sleep():
    """Skip real backoff sleeps inside the retry policy."""
    with patch("contractor_ai.gateway.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep

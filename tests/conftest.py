"""
Shared test fixtures for Totem Relay tests.
===========================================
Points the app at a throwaway log file per test and auto-patches the
completion call so API tests run without an OpenAI key.
"""

import pytest
from unittest.mock import AsyncMock, patch

from services.config import RelayConfig
from services.interaction_log import InteractionLog

ADMIN_KEY = "test-admin-key"
FAKE_REPLY = "The stone hums beneath your words. [state: Serene]"


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / "logs" / "messages.jsonl")


@pytest.fixture
def relay_config(log_path):
    return RelayConfig(openai_api_key="", admin_key=ADMIN_KEY, log_file=log_path)


@pytest.fixture
def interaction_log(log_path):
    return InteractionLog(log_path)


@pytest.fixture(autouse=True)
def _wire_app(relay_config, interaction_log):
    """
    Auto-wire the app for all tests:

    - app.state.config: test config with a known admin key
    - app.state.interaction_log: log under tmp_path
    - generate_reply: returns FAKE_REPLY (no API call)
    """
    import main

    old_config = main.app.state.config
    old_log = main.app.state.interaction_log
    main.app.state.config = relay_config
    main.app.state.interaction_log = interaction_log

    with patch("main.generate_reply", new=AsyncMock(return_value=FAKE_REPLY)):
        yield

    main.app.state.config = old_config
    main.app.state.interaction_log = old_log

"""
Totem Relay: Configuration
============================
Everything the relay reads from the environment, gathered into one
frozen object. main.py builds it once (after load_dotenv) and hands it
to the completion client and the interaction log.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger("totem.config")

# Relative to the working directory the relay is started from
DEFAULT_LOG_FILE = os.path.join("logs", "messages.jsonl")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer), using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class RelayConfig:
    """Explicit settings for one relay instance."""
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    temperature: float = 0.8
    max_tokens: int = 120
    admin_key: str = ""
    port: int = 3000
    log_file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Read settings at call time so load_dotenv() has a chance to run first."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            openai_model=os.getenv("OPENAI_MODEL", "").strip() or "gpt-3.5-turbo",
            temperature=_env_float("OPENAI_TEMPERATURE", 0.8),
            max_tokens=_env_int("OPENAI_MAX_TOKENS", 120),
            admin_key=os.getenv("ADMIN_KEY", "").strip(),
            port=_env_int("PORT", 3000),
            log_file=os.path.abspath(os.getenv("LOG_FILE", "").strip() or DEFAULT_LOG_FILE),
        )

    @property
    def mock_mode(self) -> bool:
        return not self.openai_api_key

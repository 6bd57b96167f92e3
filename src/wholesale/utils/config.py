# start-up configuration, read from the environment once
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from wholesale.utils.logger import get_logger

_logger = get_logger(__name__)

DEFAULT_APP_ID = "default-app-id"
DEFAULT_DB_PATH = "data/wholesale.sqlite"


@dataclass(frozen=True)
class Settings:
    """
    The three ambient values the client needs, plus local switches.

    Fields:
      - provider_config: connection blob for the database / identity provider
      - auth_token: optional bootstrap credential (custom sign-in token)
      - app_id: namespaces every storage path (``tenant/{app_id}/...``)
      - seed_demo: load demo accounts and products into an empty database
    """

    provider_config: Dict[str, Any] = field(default_factory=dict)
    auth_token: Optional[str] = None
    app_id: str = DEFAULT_APP_ID
    seed_demo: bool = False

    @property
    def db_path(self) -> str:
        return self.provider_config.get("database") or DEFAULT_DB_PATH


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    raw = env.get("WHOLESALE_PROVIDER_CONFIG", "").strip()
    provider_config: Dict[str, Any] = {}
    if raw:
        try:
            provider_config = json.loads(raw)
        except json.JSONDecodeError:
            _logger.error("WHOLESALE_PROVIDER_CONFIG is not valid JSON, ignoring it.")
        if not isinstance(provider_config, dict):
            _logger.error("WHOLESALE_PROVIDER_CONFIG must be a JSON object, ignoring it.")
            provider_config = {}

    return Settings(
        provider_config=provider_config,
        auth_token=env.get("WHOLESALE_AUTH_TOKEN") or None,
        app_id=env.get("WHOLESALE_APP_ID") or DEFAULT_APP_ID,
        seed_demo=_flag(env.get("WHOLESALE_SEED_DEMO")),
    )

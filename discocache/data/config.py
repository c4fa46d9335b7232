"""
Loading of the client configuration.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from discocache.data.models import ClientConfig

logger = logging.getLogger(__name__)


CONFIG_PATH_ENV_VAR = "DISCO_CACHE_CONFIG"
API_URL_ENV_VAR = "DISCO_API_URL"


def _config_path() -> Optional[Path]:
    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if not env_path:
        return None
    return Path(env_path).expanduser()


def load_client_config() -> ClientConfig:
    """
    Build the client configuration.

    Priority (highest first):
    1. Environment variable DISCO_API_URL (base URL only)
    2. JSON file named by DISCO_CACHE_CONFIG
    3. Defaults
    """
    config = ClientConfig()

    path = _config_path()
    if path is not None:
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                config = ClientConfig(**raw)
            except (OSError, ValueError, TypeError, ValidationError) as e:
                # Fall back to defaults rather than refusing to start.
                logger.warning(f"Ignoring invalid client config {path}: {e}")
        else:
            logger.warning(f"Client config {path} does not exist, using defaults")

    api_url = os.environ.get(API_URL_ENV_VAR)
    if api_url:
        config = config.model_copy(update={"disco_api_url": api_url.rstrip("/")})

    return config

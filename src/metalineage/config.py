from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

IN_MEMORY_DB_URL = "sqlite+pysqlite:///:memory:"

_ENV_DB_URL = "METALINEAGE_DB_URL"
_ENV_PATH_CHECK_TIMEOUT = "METALINEAGE_PATH_CHECK_TIMEOUT"
_ENV_LOG_LEVEL = "METALINEAGE_LOG_LEVEL"


@dataclass(slots=True)
class LineageConfig:
    db_url: str = IN_MEMORY_DB_URL
    path_check_timeout_s: float = 5.0
    log_level: str = "INFO"


def load_config(environ: Optional[dict[str, str]] = None) -> LineageConfig:
    """Build a config from defaults overridden by METALINEAGE_* environment variables."""

    env = os.environ if environ is None else environ
    config = LineageConfig()

    db_url = env.get(_ENV_DB_URL)
    if db_url:
        config.db_url = db_url

    timeout = env.get(_ENV_PATH_CHECK_TIMEOUT)
    if timeout:
        try:
            value = float(timeout)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", _ENV_PATH_CHECK_TIMEOUT, timeout)
        else:
            if value > 0:
                config.path_check_timeout_s = value
            else:
                logger.warning("Ignoring non-positive %s=%r", _ENV_PATH_CHECK_TIMEOUT, timeout)

    log_level = env.get(_ENV_LOG_LEVEL)
    if log_level:
        config.log_level = log_level.upper()

    return config

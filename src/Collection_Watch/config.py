"""Runtime settings sourced from environment variables.

Two named environments (development, production) select which credential
variables are read. Cadences, backfill seeds, and the display timezone are
plain configuration. Missing required credentials raise ConfigurationError,
the only condition allowed to stop the process at startup.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Final

from pydantic import BaseModel, ConfigDict

from Collection_Watch.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_ENVIRONMENT: Final[str] = "development"
DEFAULT_BASE_URL: Final[str] = "https://sss.ortak1.me"
DEFAULT_PUBLIC_URL: Final[str] = "https://sss.ortak.me"
DEFAULT_MAIN_INTERVAL_SECONDS: Final[float] = 120.0
DEFAULT_DISCOVERY_INTERVAL_SECONDS: Final[float] = 900.0
DEFAULT_DISPLAY_TIMEZONE: Final[str] = "Asia/Yerevan"
DEFAULT_REWARD_DIGEST_HOUR: Final[int] = 18

# Credential variable prefix per environment
_ENV_PREFIXES: Final[dict[str, str]] = {
    "development": "DEV",
    "production": "PROD",
}


class Settings(BaseModel):
    """Immutable runtime configuration for one process."""

    model_config = ConfigDict(frozen=True)

    environment: str = DEFAULT_ENVIRONMENT
    base_url: str = DEFAULT_BASE_URL
    public_url: str = DEFAULT_PUBLIC_URL

    telegram_token: str
    telegram_channel_id: str
    privileged_token: str | None = None
    privileged_channel_id: str | None = None
    yo_token: str | None = None
    yo_channel_id: str | None = None

    main_interval_seconds: float = DEFAULT_MAIN_INTERVAL_SECONDS
    discovery_interval_seconds: float = DEFAULT_DISCOVERY_INTERVAL_SECONDS
    display_timezone: str = DEFAULT_DISPLAY_TIMEZONE
    reward_digest_hour: int = DEFAULT_REWARD_DIGEST_HOUR

    missed_ids: frozenset[int] = frozenset()
    missed_scheduled_ids: frozenset[int] = frozenset()
    privileged_collection_ids: frozenset[int] = frozenset()
    privileged_enabled: bool = True

    @property
    def privileged_configured(self) -> bool:
        """True when the privileged bot has both a token and a channel."""
        return bool(self.privileged_token and self.privileged_channel_id)

    @property
    def yo_configured(self) -> bool:
        """True when the YoAI transport has both a key and a channel."""
        return bool(self.yo_token and self.yo_channel_id)


def parse_id_set(value: str | None) -> frozenset[int]:
    """Parse a comma-separated list of integer IDs, ignoring blanks and junk."""
    ids: set[int] = set()
    for raw in (value or "").replace("\n", ",").split(","):
        item = raw.strip()
        if not item:
            continue
        try:
            ids.add(int(item))
        except ValueError:
            logger.warning("Ignoring non-integer collection ID in config: %r", item)
    return frozenset(ids)


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %.0f", key, raw, default)
        return default


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from *env* (defaults to ``os.environ``).

    Raises:
        ConfigurationError: If APP_ENV is unknown or the main Telegram
            credentials are missing.
    """
    source: Mapping[str, str] = os.environ if env is None else env

    environment = source.get("APP_ENV", DEFAULT_ENVIRONMENT).strip().lower()
    prefix = _ENV_PREFIXES.get(environment)
    if prefix is None:
        msg = f"Unknown APP_ENV {environment!r}; expected one of {sorted(_ENV_PREFIXES)}"
        raise ConfigurationError(msg)

    telegram_token = source.get(f"{prefix}_TELEGRAM_TOKEN", "").strip()
    telegram_channel_id = source.get(f"{prefix}_CHANNEL_ID", "").strip()
    if not telegram_token or not telegram_channel_id:
        msg = f"{prefix}_TELEGRAM_TOKEN and {prefix}_CHANNEL_ID must be set for {environment}"
        raise ConfigurationError(msg)

    settings = Settings(
        environment=environment,
        base_url=source.get("MARKETPLACE_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        public_url=source.get("MARKETPLACE_PUBLIC_URL", DEFAULT_PUBLIC_URL).rstrip("/"),
        telegram_token=telegram_token,
        telegram_channel_id=telegram_channel_id,
        privileged_token=source.get("FARMER_TELEGRAM_TOKEN") or None,
        privileged_channel_id=source.get("FARMER_CHANNEL_ID") or None,
        yo_token=source.get(f"{prefix}_YO_TOKEN") or None,
        yo_channel_id=source.get(f"{prefix}_YO_CHANNEL_ID") or None,
        main_interval_seconds=_float_env(
            source, "MAIN_INTERVAL_SECONDS", DEFAULT_MAIN_INTERVAL_SECONDS
        ),
        discovery_interval_seconds=_float_env(
            source, "DISCOVERY_INTERVAL_SECONDS", DEFAULT_DISCOVERY_INTERVAL_SECONDS
        ),
        display_timezone=source.get("DISPLAY_TIMEZONE", DEFAULT_DISPLAY_TIMEZONE),
        missed_ids=parse_id_set(source.get("MISSED_COLLECTION_IDS")),
        missed_scheduled_ids=parse_id_set(source.get("MISSED_SCHEDULED_IDS")),
        privileged_collection_ids=parse_id_set(source.get("FARMER_COLLECTION_IDS")),
        privileged_enabled=source.get("FARMER_ALERTS_ENABLED", "1").strip() not in ("0", "false"),
    )

    logger.info(
        "Settings loaded: env=%s main=%.0fs discovery=%.0fs privileged=%s yo=%s",
        settings.environment,
        settings.main_interval_seconds,
        settings.discovery_interval_seconds,
        "configured" if settings.privileged_configured else "not configured",
        "configured" if settings.yo_configured else "not configured",
    )
    return settings

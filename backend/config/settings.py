"""
Runtime Settings
Environment-driven configuration for adapters, cache TTLs and rate limiting.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    """Service settings (seconds for every duration)"""
    orbiter_api_url: str = "https://api.orbiter.finance"
    hop_api_url: str = "https://explorer-api.hop.exchange"

    orbiter_timeout_s: float = 30.0
    orbiter_max_retries: int = 3
    orbiter_retry_delay_s: float = 1.0
    orbiter_cache_ttl_s: int = 300

    hop_timeout_s: float = 45.0
    hop_max_retries: int = 3
    hop_retry_delay_s: float = 2.0
    hop_cache_ttl_s: int = 300
    hop_lp_cache_ttl_s: int = 600

    adapter_timeout_s: float = 60.0

    rate_limit_requests: int = 10
    rate_limit_window_s: int = 60

    production: bool = False
    log_level: str = "INFO"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            orbiter_api_url=os.getenv("ORBITER_API_URL", cls.orbiter_api_url),
            hop_api_url=os.getenv("HOP_API_URL", cls.hop_api_url),
            orbiter_timeout_s=_float_env("ORBITER_TIMEOUT_S", cls.orbiter_timeout_s),
            orbiter_max_retries=_int_env("ORBITER_MAX_RETRIES", cls.orbiter_max_retries),
            orbiter_retry_delay_s=_float_env("ORBITER_RETRY_DELAY_S", cls.orbiter_retry_delay_s),
            orbiter_cache_ttl_s=_int_env("ORBITER_CACHE_TTL_S", cls.orbiter_cache_ttl_s),
            hop_timeout_s=_float_env("HOP_TIMEOUT_S", cls.hop_timeout_s),
            hop_max_retries=_int_env("HOP_MAX_RETRIES", cls.hop_max_retries),
            hop_retry_delay_s=_float_env("HOP_RETRY_DELAY_S", cls.hop_retry_delay_s),
            hop_cache_ttl_s=_int_env("HOP_CACHE_TTL_S", cls.hop_cache_ttl_s),
            hop_lp_cache_ttl_s=_int_env("HOP_LP_CACHE_TTL_S", cls.hop_lp_cache_ttl_s),
            adapter_timeout_s=_float_env("ADAPTER_TIMEOUT_S", cls.adapter_timeout_s),
            rate_limit_requests=_int_env("RATE_LIMIT_REQUESTS", cls.rate_limit_requests),
            rate_limit_window_s=_int_env("RATE_LIMIT_WINDOW_S", cls.rate_limit_window_s),
            production=bool(os.getenv("PRODUCTION")),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            port=_int_env("PORT", cls.port),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings

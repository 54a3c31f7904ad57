"""Package settings loaded from WISE_FETCH_* environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_FOLLOW


class WiseFetchSettings(BaseSettings):
    """Settings shared by every wise_fetch instance.

    Proxy variables are not part of these settings: they are re-read from
    the environment on every request.
    """

    model_config = SettingsConfigDict(env_prefix="WISE_FETCH_", case_sensitive=False, env_file=None)

    debug: bool = False
    ssl_cert_verify: bool = True
    default_follow: int = DEFAULT_FOLLOW


@lru_cache()
def get_settings() -> WiseFetchSettings:
    """Get cached settings instance."""
    return WiseFetchSettings()

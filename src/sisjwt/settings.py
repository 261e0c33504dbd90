"""Process configuration loaded from environment variables."""

from __future__ import annotations

import threading

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KEY_ALG = "RSASSA_PKCS1_V1_5_SHA_256"
DEFAULT_ISS = "SISi"
DEFAULT_AUD = "SISa"
DEFAULT_AWS_REGION = "us-west-2"
DEV_SHARED_SECRET = "s3cr37"
DEFAULT_VERBOSITY = 3


class SisjwtSettings(BaseSettings):
    """Defaults for token options, read from ``SISJWT_*`` and ``AWS_*`` variables."""

    model_config = SettingsConfigDict(env_prefix="SISJWT_", populate_by_name=True)

    env: str = Field(
        default="development",
        validation_alias=AliasChoices("SISJWT_ENV", "APP_ENV"),
    )
    unsafe_allow_dev_token_in_prod: bool = False
    key_id: str | None = None
    key_alg: str = DEFAULT_KEY_ALG
    iss: str = DEFAULT_ISS
    aud: str = DEFAULT_AUD
    aws_region: str = Field(default=DEFAULT_AWS_REGION, validation_alias="AWS_REGION")
    aws_profile: str | None = Field(default=None, validation_alias="AWS_PROFILE")
    dev_secret: str = DEV_SHARED_SECRET
    inventory_path: str | None = None
    inventory_env: str | None = None
    verbose: int = DEFAULT_VERBOSITY


_current: SisjwtSettings | None = None
_lock = threading.Lock()


def load_settings() -> SisjwtSettings:
    return SisjwtSettings()


def current_settings() -> SisjwtSettings:
    global _current
    if _current is None:
        with _lock:
            if _current is None:
                _current = load_settings()
    return _current


def reset_current_settings() -> None:
    global _current
    with _lock:
        _current = None

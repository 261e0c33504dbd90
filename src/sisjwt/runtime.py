"""Facts about the environment sisjwt is running in.

Everything that differs between production and development (which token
type is issued, how long tokens live, whether the development token type
may be accepted) is answered here, so the rest of the package can take a
``Runtime`` as an argument instead of reading the process environment.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from .settings import SisjwtSettings, current_settings

TOKEN_TYPE_V1 = "SISKMS1.0"
TOKEN_TYPE_DEV = "SISKMSd"
TOKEN_TYPE_PREFIX = "SISKMS"
KEY_ID_ENV_NAME = "SISJWT_KEY_ID"

PRODUCTION_TOKEN_LIFETIME = 60
DEVELOPMENT_TOKEN_LIFETIME = 3600

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Runtime:
    environment: str = "development"
    unsafe_allow_dev_token: bool = False
    aws_profile_override: str | None = None

    @classmethod
    def from_settings(cls, settings: SisjwtSettings) -> Runtime:
        runtime = cls(
            environment=settings.env,
            unsafe_allow_dev_token=settings.unsafe_allow_dev_token_in_prod,
            aws_profile_override=settings.aws_profile,
        )
        if runtime.production and runtime.unsafe_allow_dev_token:
            logger.warning("development tokens are accepted in a production environment")
        return runtime

    @property
    def production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def allow_dev_token(self) -> bool:
        if not self.production:
            return True
        return self.unsafe_allow_dev_token

    def allowed_token_types(self) -> tuple[str, ...]:
        if self.allow_dev_token:
            return (TOKEN_TYPE_V1, TOKEN_TYPE_DEV)
        return (TOKEN_TYPE_V1,)

    def valid_token_type(self, token_type: str | None) -> bool:
        return token_type in self.allowed_token_types()

    @property
    def token_type(self) -> str:
        return TOKEN_TYPE_V1 if self.production else TOKEN_TYPE_DEV

    @property
    def token_lifetime(self) -> int:
        return PRODUCTION_TOKEN_LIFETIME if self.production else DEVELOPMENT_TOKEN_LIFETIME

    @property
    def aws_profile(self) -> str:
        if self.aws_profile_override is not None:
            return self.aws_profile_override
        return "" if self.production else "dev"


_current: Runtime | None = None
_lock = threading.Lock()


def current_runtime() -> Runtime:
    global _current
    if _current is None:
        with _lock:
            if _current is None:
                _current = Runtime.from_settings(current_settings())
    return _current


def reset_current_runtime() -> None:
    global _current
    with _lock:
        _current = None

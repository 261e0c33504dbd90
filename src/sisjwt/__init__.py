from importlib import metadata

from .algorithm import SisJwtV1, VerificationKey
from .arn_inventory import ArnInventory
from .errors import (
    ConfigurationError,
    InventoryFileError,
    InventoryFileNotFoundError,
    KeyNotFoundError,
    SisjwtError,
)
from .key_strategies import AsGiven, EnvKey, KeyStrategy, SwapRegion, default_strategies
from .kms_verify import KmsVerifier
from .options import Mode, Options, current_options
from .runtime import KEY_ID_ENV_NAME, TOKEN_TYPE_DEV, TOKEN_TYPE_V1, Runtime, current_runtime
from .settings import DEV_SHARED_SECRET, SisjwtSettings, current_settings
from .token import SisJwt
from .verification import MAX_ALLOWED_AGE, VerificationResult

__all__ = [
    "DEV_SHARED_SECRET",
    "KEY_ID_ENV_NAME",
    "MAX_ALLOWED_AGE",
    "TOKEN_TYPE_DEV",
    "TOKEN_TYPE_V1",
    "ArnInventory",
    "AsGiven",
    "ConfigurationError",
    "EnvKey",
    "InventoryFileError",
    "InventoryFileNotFoundError",
    "KeyNotFoundError",
    "KeyStrategy",
    "KmsVerifier",
    "Mode",
    "Options",
    "Runtime",
    "SisJwt",
    "SisJwtV1",
    "SisjwtError",
    "SisjwtSettings",
    "SwapRegion",
    "VerificationKey",
    "VerificationResult",
    "__version__",
    "current_options",
    "current_runtime",
    "current_settings",
    "default_strategies",
]

try:
    __version__ = metadata.version("sisjwt")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"

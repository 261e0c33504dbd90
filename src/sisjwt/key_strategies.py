"""Ways of turning the key id found in a token into one KMS will accept.

Keys are region scoped in KMS, and a token signed in one region may be
verified in another where the same (multi-region) key lives under a
different ARN. Each strategy proposes one candidate key id, or ``None``
when it does not apply.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .kms import client_region

KMS_ARN_PREFIX = "arn:aws:kms:"


class KeyStrategy(ABC):
    @abstractmethod
    def candidate(self, key_id: str, kms_client: Any) -> str | None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class AsGiven(KeyStrategy):
    """The key id exactly as the token carries it."""

    def candidate(self, key_id: str, kms_client: Any) -> str | None:
        return key_id


class SwapRegion(KeyStrategy):
    """The same key ARN, but in the region the KMS client is bound to."""

    def candidate(self, key_id: str, kms_client: Any) -> str | None:
        if not key_id.startswith(KMS_ARN_PREFIX):
            return None
        region = client_region(kms_client)
        if not region:
            return None
        # arn:aws:kms:<region>:<account>:key/<id>
        parts = key_id.split(":")
        if len(parts) < 5:
            return None
        swapped = ":".join([*parts[:3], region, *parts[4:]])
        return swapped if swapped != key_id else None


class EnvKey(KeyStrategy):
    """The key id this deployment is pinned to (``SISJWT_KEY_ID``)."""

    def __init__(self, key_id: str | None) -> None:
        self.key_id = key_id or None

    def candidate(self, key_id: str, kms_client: Any) -> str | None:
        if not self.key_id or self.key_id == key_id:
            return None
        return self.key_id

    def __repr__(self) -> str:
        return f"EnvKey({self.key_id!r})"


def default_strategies(env_key_id: str | None = None) -> list[KeyStrategy]:
    return [AsGiven(), SwapRegion(), EnvKey(env_key_id)]

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from botocore.exceptions import ClientError

from .errors import KeyNotFoundError
from .key_strategies import KeyStrategy, default_strategies
from .kms import is_invalid_signature, is_key_not_found

logger = logging.getLogger(__name__)


class KmsVerifier:
    """Verify a signature with KMS, trying each key strategy in turn.

    The first strategy that reaches KMS with a known key decides the
    outcome, valid or not. Strategies that do not apply, repeat a key id
    already tried, or name a key KMS does not know are skipped. When none
    is left, :class:`KeyNotFoundError` names the key id from the token.
    """

    def __init__(
        self, kms_client: Any, strategies: Sequence[KeyStrategy] | None = None
    ) -> None:
        self.kms_client = kms_client
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def verify(self, params: dict[str, Any]) -> bool:
        key_id = params.get("KeyId") or ""
        tried: set[str] = set()
        for strategy in self.strategies:
            candidate = strategy.candidate(key_id, self.kms_client)
            if not candidate or candidate in tried:
                continue
            tried.add(candidate)
            outcome = self._attempt(strategy, {**params, "KeyId": candidate})
            if outcome is not None:
                return outcome
        raise KeyNotFoundError(key_id)

    def _attempt(self, strategy: KeyStrategy, params: dict[str, Any]) -> bool | None:
        logger.debug("kms verify strategy=%r key_id=%s", strategy, params["KeyId"])
        try:
            response = self.kms_client.verify(**params)
        except ClientError as exc:
            if is_key_not_found(exc):
                logger.debug("kms key not found: %s", params["KeyId"])
                return None
            if is_invalid_signature(exc):
                return False
            raise
        return bool(response.get("SignatureValid"))

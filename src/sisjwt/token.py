from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from jwt.api_jws import PyJWS
from jwt.exceptions import DecodeError, PyJWTError

from .algorithm import SisJwtV1, VerificationKey
from .arn_inventory import ArnInventory
from .errors import ConfigurationError, KeyNotFoundError
from .headers import CaseInsensitiveDict
from .key_strategies import KeyStrategy
from .options import Options, current_options, is_number
from .settings import current_settings
from .verification import VerificationResult

logger = logging.getLogger(__name__)

HEADER_KEY_ALG = "AWS_ALG"
HEADER_KEY_ID = "kid"


def _load_payload(raw: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"Invalid payload string: {exc}") from exc
    if not isinstance(payload, dict):
        raise DecodeError("Invalid payload string: must be a json object")
    return payload


class SisJwt:
    """Builds and verifies tokens for one set of :class:`Options`."""

    def __init__(
        self,
        options: Options,
        *,
        kms_client: Any = None,
        strategies: Sequence[KeyStrategy] | None = None,
        inventory: ArnInventory | None = None,
        secret: str | None = None,
    ) -> None:
        self.options = options
        self.inventory = inventory
        self.secret = secret if secret is not None else current_settings().dev_secret
        self._kms_client = kms_client
        self._strategies = strategies
        self._algorithm: SisJwtV1 | None = None

    @classmethod
    def build(cls, **kwargs: Any) -> SisJwt:
        return cls(current_options(), **kwargs)

    @property
    def algorithm(self) -> SisJwtV1:
        if self._algorithm is None:
            self._algorithm = SisJwtV1(
                self.options, kms_client=self._kms_client, strategies=self._strategies
            )
        return self._algorithm

    def encode(self, payload: dict[str, Any]) -> str:
        if not isinstance(payload, dict):
            raise TypeError("payload should be a dict")

        claims = self._merge_options(payload)
        headers = self.encode_headers()
        logger.debug("sisjwt encode headers=%s payload=%s", headers, claims)
        return self._jws().encode(
            json.dumps(claims, separators=(",", ":")).encode("utf-8"),
            key=self.secret,
            algorithm=self.algorithm.name,
            headers={**headers, "typ": None},
        )

    def verify(
        self,
        token: str | bytes,
        *,
        allowed_iss: str | Iterable[str] | None = None,
        allowed_aud: str | Iterable[str] | None = None,
    ) -> VerificationResult:
        """Decode ``token`` and check it; never raises for a bad token.

        Malformed tokens, bad signatures and unknown keys come back as a
        result carrying the error, so callers only need to look at
        ``valid`` and ``errors``.
        """
        logger.debug("sisjwt verify token=%s", token)
        runtime = self.options.runtime
        # Option errors raise here, before the token is read.
        _ = self.algorithm
        try:
            payload, headers = self._decode(token)
        except (PyJWTError, KeyNotFoundError, ConfigurationError) as exc:
            logger.error("[sisjwt verify]: [%s] %s", type(exc).__name__, exc)
            result = VerificationResult.error(str(exc), inventory=self.inventory, runtime=runtime)
        else:
            result = VerificationResult(headers, payload, inventory=self.inventory, runtime=runtime)
            logger.debug("sisjwt verified: %r", result)

        result.add_allowed_iss(allowed_iss)
        result.add_allowed_aud(allowed_aud)
        return result

    def encode_headers(self) -> dict[str, Any]:
        headers: dict[str, Any] = {"alg": self.options.token_type}
        if self.options.kms_configured:
            headers[HEADER_KEY_ID] = self.options.key_id
            headers[HEADER_KEY_ALG] = self.options.key_alg
        return {k: v for k, v in headers.items() if v is not None}

    def find_key(self, headers: Mapping[str, Any], payload: Mapping[str, Any]) -> Any:
        """Key lookup run before the signature check.

        With KMS configured the key is whatever the token header names;
        otherwise it is the shared development secret.
        """
        if not self.options.kms_configured:
            return self.secret
        alg = headers.get(HEADER_KEY_ALG)
        kid = headers.get(HEADER_KEY_ID)
        key = VerificationKey(
            algorithm=str(alg) if alg else None,
            key_id=str(kid) if kid else "",
        )
        logger.debug("sisjwt verify kms key=%s iss=%s", key, payload.get("iss"))
        return key

    def _jws(self) -> PyJWS:
        jws = PyJWS(algorithms=[])
        names = dict.fromkeys([self.algorithm.name, *self.algorithm.valid_names()])
        for name in names:
            jws.register_algorithm(name, self.algorithm)
        return jws

    def _decode(self, token: str | bytes) -> tuple[dict[str, Any], dict[str, Any]]:
        jws = self._jws()
        unverified = jws.decode_complete(token, options={"verify_signature": False})
        key = self.find_key(
            CaseInsensitiveDict(unverified["header"]), _load_payload(unverified["payload"])
        )
        verified = jws.decode_complete(token, key=key, algorithms=self.algorithm.valid_names())
        return _load_payload(verified["payload"]), verified["header"]

    def _merge_options(self, payload: dict[str, Any]) -> dict[str, Any]:
        claims = dict(payload)
        claims["iss"] = self.options.iss
        claims["aud"] = self.options.aud
        if not is_number(claims.get("iat")):
            claims["iat"] = self.options.iat
        if not is_number(claims.get("exp")):
            claims["exp"] = self.options.expires_for(claims["iat"])
        return {k: v for k, v in claims.items() if v is not None}

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, NoReturn

from jwt.algorithms import Algorithm, HMACAlgorithm
from jwt.exceptions import InvalidKeyError

from .errors import ConfigurationError
from .key_strategies import KeyStrategy, default_strategies
from .kms import MESSAGE_TYPE_RAW, get_kms_client
from .kms_verify import KmsVerifier
from .options import Options
from .settings import current_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationKey:
    """The KMS signing algorithm and key id a token says it was signed with."""

    algorithm: str | None
    key_id: str

    @classmethod
    def parse(cls, text: str) -> VerificationKey:
        algorithm, _, key_id = text.partition(";")
        return cls(algorithm=algorithm or None, key_id=key_id)

    def __str__(self) -> str:
        return f"{self.algorithm or ''};{self.key_id}"


class SisJwtV1(Algorithm):
    """The JWS algorithm behind ``SISKMS*`` tokens.

    With KMS configured, signatures are made and checked by KMS using the
    asymmetric key named in the options (or in the token, on verify).
    Otherwise it is HMAC-SHA512 over the shared development secret.
    """

    def __init__(
        self,
        options: Options,
        *,
        kms_client: Any = None,
        strategies: Sequence[KeyStrategy] | None = None,
    ) -> None:
        self.options = options
        self._kms_client = kms_client
        self._strategies = strategies
        self._hmac = HMACAlgorithm(HMACAlgorithm.SHA512)

        if self.options.validate():
            # boto reports a bad region or profile before our own errors.
            _ = self.kms_client
            raise ConfigurationError(
                "sisjwt options are not configured properly", self.options.full_messages()
            )

    @property
    def name(self) -> str:
        return str(self.options.token_type)

    def is_valid_name(self, candidate: str | None) -> bool:
        return self.options.runtime.valid_token_type(candidate)

    def valid_names(self) -> list[str]:
        return list(self.options.runtime.allowed_token_types())

    @property
    def kms_client(self) -> Any:
        if self._kms_client is None:
            self._assert_configured()
            self._kms_client = get_kms_client(self.options.aws_region, self.options.aws_profile)
        return self._kms_client

    @property
    def strategies(self) -> list[KeyStrategy]:
        if self._strategies is None:
            self._strategies = default_strategies(current_settings().key_id)
        return list(self._strategies)

    def prepare_key(self, key: Any) -> Any:
        if isinstance(key, VerificationKey):
            return key
        if self.options.kms_configured and isinstance(key, str):
            return VerificationKey.parse(key)
        return key

    def sign(self, msg: bytes, key: Any) -> bytes:
        kms = self.options.kms_configured
        logger.debug("[%s] sign kms=%s data=%d bytes", self.name, kms, len(msg))
        if kms:
            return self._kms_sign(msg)
        if self.options.runtime.production:
            self._assert_configured()
        return self._hmac.sign(msg, self._secret(key))

    def verify(self, msg: bytes, key: Any, sig: bytes) -> bool:
        if self.options.kms_configured:
            verification_key = (
                key if isinstance(key, VerificationKey) else VerificationKey.parse(str(key))
            )
            logger.debug(
                "[%s] verify kms alg=%s key_id=%s data=%d signature=%d",
                self.name,
                verification_key.algorithm,
                verification_key.key_id,
                len(msg),
                len(sig),
            )
            return self._kms_verify(msg, sig, verification_key)
        if not self.options.runtime.allow_dev_token:
            self._assert_configured()
        return self._hmac.verify(msg, self._secret(key), sig)

    @staticmethod
    def to_jwk(key_obj: Any, as_dict: bool = False) -> NoReturn:
        raise NotImplementedError("KMS keys cannot be exported as JWK")

    @staticmethod
    def from_jwk(jwk: Any) -> NoReturn:
        raise NotImplementedError("KMS keys cannot be loaded from JWK")

    def _assert_configured(self) -> None:
        if self.options.kms_configured:
            return
        raise ConfigurationError(
            "KMS is not configured properly, KMS signing not allowed!",
            self.options.full_messages(),
        )

    def _secret(self, key: Any) -> bytes:
        if isinstance(key, VerificationKey):
            raise InvalidKeyError("a shared secret is required when KMS is not configured")
        return self._hmac.prepare_key(key)

    def _kms_sign(self, msg: bytes) -> bytes:
        response = self.kms_client.sign(
            KeyId=self.options.key_id,
            SigningAlgorithm=self.options.key_alg,
            MessageType=MESSAGE_TYPE_RAW,
            Message=msg,
        )
        return response["Signature"]

    def _kms_verify(self, msg: bytes, sig: bytes, key: VerificationKey) -> bool:
        params = {
            "KeyId": key.key_id,
            "SigningAlgorithm": key.algorithm or self.options.key_alg,
            "MessageType": MESSAGE_TYPE_RAW,
            "Message": msg,
            "Signature": sig,
        }
        return KmsVerifier(self.kms_client, self.strategies).verify(params)

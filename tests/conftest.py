from __future__ import annotations

from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any

import pytest
from botocore.exceptions import ClientError
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from sisjwt.kms import clear_kms_clients
from sisjwt.options import Options, reset_current_options
from sisjwt.runtime import TOKEN_TYPE_V1, Runtime, reset_current_runtime
from sisjwt.settings import reset_current_settings

KEY_ALG = "RSASSA_PKCS1_V1_5_SHA_256"
ARN_WEST = "arn:aws:kms:us-west-2:111122223333:key/mrk-1234abcd"
ARN_EAST = "arn:aws:kms:us-east-1:111122223333:key/mrk-1234abcd"
ARN_PINNED = "arn:aws:kms:us-west-2:111122223333:key/mrk-pinned"

_ENV_VARS = (
    "SISJWT_ENV",
    "APP_ENV",
    "SISJWT_UNSAFE_ALLOW_DEV_TOKEN_IN_PROD",
    "SISJWT_KEY_ID",
    "SISJWT_KEY_ALG",
    "SISJWT_ISS",
    "SISJWT_AUD",
    "SISJWT_DEV_SECRET",
    "SISJWT_INVENTORY_PATH",
    "SISJWT_INVENTORY_ENV",
    "SISJWT_VERBOSE",
    "AWS_PROFILE",
)


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class LocalKms:
    """In-memory KMS Sign/Verify backed by real RSA keys."""

    def __init__(self, region: str = "us-west-2") -> None:
        self.meta = SimpleNamespace(region_name=region)
        self.keys: dict[str, rsa.RSAPrivateKey] = {}
        self.calls: list[tuple[str, str]] = []

    def create_key(self, key_id: str) -> str:
        self.keys[key_id] = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        return key_id

    def sign(self, *, KeyId: str, SigningAlgorithm: str, MessageType: str, Message: bytes) -> Any:
        self.calls.append(("sign", KeyId))
        key = self._key(KeyId, "Sign")
        signature = key.sign(Message, padding.PKCS1v15(), hashes.SHA256())
        return {"KeyId": KeyId, "Signature": signature, "SigningAlgorithm": SigningAlgorithm}

    def verify(
        self,
        *,
        KeyId: str,
        SigningAlgorithm: str,
        MessageType: str,
        Message: bytes,
        Signature: bytes,
    ) -> Any:
        self.calls.append(("verify", KeyId))
        key = self._key(KeyId, "Verify")
        try:
            key.public_key().verify(Signature, Message, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            raise client_error("KMSInvalidSignatureException", "Verify") from None
        return {"KeyId": KeyId, "SignatureValid": True, "SigningAlgorithm": SigningAlgorithm}

    def verified_key_ids(self) -> list[str]:
        return [key_id for op, key_id in self.calls if op == "verify"]

    def _key(self, key_id: str, operation: str) -> rsa.RSAPrivateKey:
        if key_id not in self.keys:
            raise client_error("NotFoundException", operation)
        return self.keys[key_id]


def _reset() -> None:
    reset_current_settings()
    reset_current_runtime()
    reset_current_options()
    clear_kms_clients()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_REGION", "us-west-2")
    _reset()
    yield
    _reset()


@pytest.fixture
def dev_runtime() -> Runtime:
    return Runtime("development")


@pytest.fixture
def prod_runtime() -> Runtime:
    return Runtime("production")


@pytest.fixture
def dev_options(dev_runtime: Runtime) -> Options:
    return Options.defaults(runtime=dev_runtime)


def kms_options_for(runtime: Runtime, **changes: Any) -> Options:
    values: dict[str, Any] = {
        "token_type": TOKEN_TYPE_V1,
        "key_alg": KEY_ALG,
        "key_id": ARN_WEST,
        "aws_region": "us-west-2",
    }
    opts = Options.defaults(runtime=runtime).replace(**{**values, **changes})
    opts.validate()
    return opts


@pytest.fixture
def kms_options(dev_runtime: Runtime) -> Options:
    return kms_options_for(dev_runtime)


@pytest.fixture
def local_kms() -> LocalKms:
    kms = LocalKms()
    kms.create_key(ARN_WEST)
    return kms

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from sisjwt.errors import KeyNotFoundError
from sisjwt.key_strategies import AsGiven, EnvKey, SwapRegion, default_strategies
from sisjwt.kms import clear_kms_clients, get_kms_client, is_invalid_signature, is_key_not_found
from sisjwt.kms_verify import KmsVerifier

from conftest import ARN_EAST, ARN_PINNED, ARN_WEST, KEY_ALG, LocalKms, client_error

MESSAGE = b"header.payload"
SIGNATURE = b"\x01" * 256


def _params(key_id: str) -> dict[str, Any]:
    return {
        "KeyId": key_id,
        "SigningAlgorithm": KEY_ALG,
        "MessageType": "RAW",
        "Message": MESSAGE,
        "Signature": SIGNATURE,
    }


@pytest.fixture
def kms_west() -> Iterator[tuple[Any, Stubber]]:
    client = boto3.client(
        "kms",
        region_name="us-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


def test_as_given_returns_the_key_id() -> None:
    assert AsGiven().candidate(ARN_EAST, LocalKms()) == ARN_EAST


def test_swap_region_uses_client_region() -> None:
    assert SwapRegion().candidate(ARN_EAST, LocalKms("us-west-2")) == ARN_WEST


def test_swap_region_skips_same_region_and_non_arns() -> None:
    kms = LocalKms("us-west-2")
    assert SwapRegion().candidate(ARN_WEST, kms) is None
    assert SwapRegion().candidate("alias/signing", kms) is None
    assert SwapRegion().candidate("1234abcd-12ab-34cd-56ef-1234567890ab", kms) is None
    assert SwapRegion().candidate(ARN_EAST, object()) is None


def test_env_key_only_offers_a_different_key() -> None:
    assert EnvKey(ARN_PINNED).candidate(ARN_EAST, None) == ARN_PINNED
    assert EnvKey(ARN_PINNED).candidate(ARN_PINNED, None) is None
    assert EnvKey("").candidate(ARN_EAST, None) is None
    assert EnvKey(None).candidate(ARN_EAST, None) is None


def test_default_strategy_order() -> None:
    strategies = default_strategies(ARN_PINNED)
    assert [type(s) for s in strategies] == [AsGiven, SwapRegion, EnvKey]
    assert repr(strategies[2]) == f"EnvKey({ARN_PINNED!r})"


def test_error_classification() -> None:
    assert is_key_not_found(client_error("NotFoundException", "Verify"))
    assert not is_key_not_found(client_error("AccessDeniedException", "Verify"))
    assert is_invalid_signature(client_error("KMSInvalidSignatureException", "Verify"))
    assert not is_invalid_signature(ValueError("nope"))


def test_verifier_accepts_on_first_known_key(kms_west: tuple[Any, Stubber]) -> None:
    client, stubber = kms_west
    stubber.add_response(
        "verify",
        {"KeyId": ARN_WEST, "SignatureValid": True, "SigningAlgorithm": KEY_ALG},
        _params(ARN_WEST),
    )
    verifier = KmsVerifier(client, default_strategies(ARN_PINNED))
    assert verifier.verify(_params(ARN_WEST)) is True


def test_verifier_falls_through_to_swapped_region(kms_west: tuple[Any, Stubber]) -> None:
    client, stubber = kms_west
    stubber.add_client_error("verify", service_error_code="NotFoundException")
    stubber.add_response(
        "verify",
        {"KeyId": ARN_WEST, "SignatureValid": True, "SigningAlgorithm": KEY_ALG},
        _params(ARN_WEST),
    )
    # The pinned key is never tried once the swapped ARN succeeds.
    verifier = KmsVerifier(client, default_strategies(ARN_PINNED))
    assert verifier.verify(_params(ARN_EAST)) is True


def test_verifier_reports_invalid_signature(kms_west: tuple[Any, Stubber]) -> None:
    client, stubber = kms_west
    stubber.add_client_error("verify", service_error_code="KMSInvalidSignatureException")
    verifier = KmsVerifier(client, default_strategies(ARN_PINNED))
    assert verifier.verify(_params(ARN_WEST)) is False


def test_verifier_names_original_key_when_exhausted(kms_west: tuple[Any, Stubber]) -> None:
    client, stubber = kms_west
    for _ in range(3):
        stubber.add_client_error("verify", service_error_code="NotFoundException")
    verifier = KmsVerifier(client, default_strategies(ARN_PINNED))
    with pytest.raises(KeyNotFoundError) as excinfo:
        verifier.verify(_params(ARN_EAST))
    assert excinfo.value.key_id == ARN_EAST
    assert str(excinfo.value) == f"key_id not found: {ARN_EAST!r}"


def test_verifier_propagates_other_kms_errors(kms_west: tuple[Any, Stubber]) -> None:
    client, stubber = kms_west
    stubber.add_client_error("verify", service_error_code="AccessDeniedException")
    with pytest.raises(ClientError):
        KmsVerifier(client).verify(_params(ARN_WEST))


def test_verifier_skips_duplicate_and_blank_candidates() -> None:
    kms = LocalKms("us-west-2")
    verifier = KmsVerifier(kms, [AsGiven(), AsGiven(), EnvKey(ARN_WEST)])
    with pytest.raises(KeyNotFoundError):
        verifier.verify(_params(ARN_WEST))
    assert kms.verified_key_ids() == [ARN_WEST]

    # Blank candidates are skipped.
    blank = KmsVerifier(kms, [AsGiven(), SwapRegion()])
    with pytest.raises(KeyNotFoundError, match="key_id not found: ''"):
        blank.verify(_params(""))
    assert kms.verified_key_ids() == [ARN_WEST]

    # The pinned key is still offered for it.
    with pytest.raises(KeyNotFoundError, match="key_id not found: ''"):
        verifier.verify(_params(""))
    assert kms.verified_key_ids() == [ARN_WEST, ARN_WEST]


def test_kms_clients_are_shared_per_region_and_profile() -> None:
    clear_kms_clients()
    west = get_kms_client("us-west-2")
    assert get_kms_client("us-west-2") is west
    assert get_kms_client("us-east-1") is not west
    assert west.meta.region_name == "us-west-2"
    clear_kms_clients()
    assert get_kms_client("us-west-2") is not west

from __future__ import annotations

import logging
import threading
from typing import Any

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MESSAGE_TYPE_RAW = "RAW"
NOT_FOUND_CODES = frozenset({"NotFoundException"})
INVALID_SIGNATURE_CODES = frozenset({"KMSInvalidSignatureException"})

_clients: dict[tuple[str | None, str | None], Any] = {}
_lock = threading.Lock()


def get_kms_client(region: str | None, profile: str | None = None) -> Any:
    """Return the shared KMS client for ``(region, profile)``, creating it once."""
    cache_key = (region or None, profile or None)
    with _lock:
        client = _clients.get(cache_key)
        if client is None:
            logger.debug("creating KMS client region=%s profile=%s", region, profile)
            session = boto3.session.Session(
                region_name=region or None, profile_name=profile or None
            )
            client = session.client("kms")
            _clients[cache_key] = client
    return client


def clear_kms_clients() -> None:
    with _lock:
        _clients.clear()


def client_region(client: Any) -> str | None:
    meta = getattr(client, "meta", None)
    return getattr(meta, "region_name", None)


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_key_not_found(exc: Exception) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) in NOT_FOUND_CODES


def is_invalid_signature(exc: Exception) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) in INVALID_SIGNATURE_CODES

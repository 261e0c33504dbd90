from __future__ import annotations

from collections.abc import Iterable


class SisjwtError(Exception):
    """Base class for every error raised by sisjwt."""


class ConfigurationError(SisjwtError):
    """Options are missing or inconsistent; signing must not proceed."""

    def __init__(self, message: str, messages: Iterable[str] = ()) -> None:
        self.messages = list(messages)
        if self.messages:
            message = "\n".join([message, *self.messages])
        super().__init__(message)


class KeyNotFoundError(SisjwtError):
    """No key resolution strategy found a key KMS would accept."""

    def __init__(self, key_id: str | None) -> None:
        self.key_id = key_id or ""
        super().__init__(f"key_id not found: {self.key_id!r}")


class InventoryFileError(SisjwtError):
    pass


class InventoryFileNotFoundError(InventoryFileError, FileNotFoundError):
    pass

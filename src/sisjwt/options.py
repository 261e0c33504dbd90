from __future__ import annotations

import dataclasses
import math
import re
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .runtime import TOKEN_TYPE_PREFIX, TOKEN_TYPE_V1, Runtime, current_runtime
from .settings import SisjwtSettings, current_settings

_TOKEN_TYPE_RE = re.compile(rf"^{re.escape(TOKEN_TYPE_PREFIX)}")

BLANK = "can't be blank"


class Mode(str, Enum):
    SIGN = "sign"
    VERIFY = "verify"


def is_number(value: Any) -> bool:
    """True for a finite int or float; bools, NaN and infinities do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def format_messages(errors: dict[str, list[str]]) -> list[str]:
    """Flatten field-scoped errors; ``base`` messages are kept verbatim."""
    messages: list[str] = []
    for attr, items in errors.items():
        for item in items:
            messages.append(item if attr == "base" else f"{attr} {item}")
    return messages


@dataclass
class Options:
    """Everything needed to sign or verify a token.

    Built once from settings (see :meth:`defaults`), optionally adjusted by
    the caller, and validated before use. Verify-mode options only need a
    token type the runtime accepts; sign-mode options must describe a
    complete token.
    """

    mode: Mode = Mode.SIGN
    token_type: str | None = None
    key_alg: str | None = None
    key_id: str | None = None
    aws_region: str | None = None
    aws_profile: str | None = None
    token_lifetime: int | None = None
    iss: str | None = None
    aud: str | None = None
    issued_at: float | None = None
    expires_at: Any = None
    runtime: Runtime = field(default_factory=current_runtime, repr=False, compare=False)
    errors: dict[str, list[str]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self.mode = Mode(self.mode)

    @classmethod
    def defaults(
        cls,
        mode: Mode | str = Mode.SIGN,
        *,
        settings: SisjwtSettings | None = None,
        runtime: Runtime | None = None,
    ) -> Options:
        if runtime is None:
            runtime = Runtime.from_settings(settings) if settings else current_runtime()
        if settings is None:
            settings = current_settings()
        opts = cls(
            mode=Mode(mode),
            token_type=runtime.token_type,
            key_alg=settings.key_alg,
            key_id=settings.key_id,
            aws_region=settings.aws_region,
            aws_profile=runtime.aws_profile,
            token_lifetime=runtime.token_lifetime,
            iss=settings.iss,
            aud=settings.aud,
            runtime=runtime,
        )
        if opts.sign:
            opts.validate()
        return opts

    def replace(self, **changes: Any) -> Options:
        return dataclasses.replace(self, **changes)

    @property
    def sign(self) -> bool:
        return self.mode is Mode.SIGN

    @property
    def iat(self) -> float:
        if is_number(self.issued_at):
            return self.issued_at  # type: ignore[return-value]
        return int(time.time())

    @property
    def exp(self) -> Any:
        return self.expires_for(self.iat)

    def expires_for(self, issued_at: float) -> Any:
        """Expiry for a token issued at ``issued_at``; ``expires_at`` wins when set."""
        if not _blank(self.expires_at):
            return self.expires_at
        return int(issued_at + int(self.token_lifetime or 0))

    @property
    def production_token_type(self) -> bool:
        return self.token_type == TOKEN_TYPE_V1

    @property
    def kms_configured(self) -> bool:
        """True when every value needed to call KMS is present."""
        return (
            self.production_token_type
            and not _blank(self.aws_region)
            and not _blank(self.key_id)
            and not _blank(self.key_alg)
        )

    def validate(self) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}

        def add(attr: str, message: str) -> None:
            errors.setdefault(attr, []).append(message)

        if not self.runtime.valid_token_type(self.token_type):
            add("token_type", "is invalid")

        if self.sign:
            self._validate_signing(add)

        self.errors = errors
        return errors

    def _validate_signing(self, add: Any) -> None:
        if self.kms_configured:
            for attr in ("key_alg", "key_id", "aws_region"):
                if _blank(getattr(self, attr)):
                    add(attr, BLANK)
        for attr in ("token_lifetime", "iss", "aud"):
            if _blank(getattr(self, attr)):
                add(attr, BLANK)

        if self.iss == self.aud:
            add("iss", "Can not be equal to AUDience!")

        if not _blank(self.expires_at):
            if not is_number(self.expires_at):
                add("exp", "must be the unix timestamp the token expires")
            elif self.expires_at < self.iat:
                add("exp", "can not be before the token was issued (iat)")

        if not _TOKEN_TYPE_RE.match(self.token_type or ""):
            add("token_type", f"({self.token_type}) is not a valid token type!")

        if self.runtime.production:
            if not self.production_token_type:
                add("base", "Can not issue non-production tokens in a production environment")
            if not self.kms_configured:
                add("base", "AWS KMS is not properly configured")

    def is_valid(self) -> bool:
        return not self.validate()

    def full_messages(self) -> list[str]:
        return format_messages(self.errors)

    def error_messages(self, revalidate: bool = True) -> str | None:
        if revalidate:
            self.validate()
        if not self.errors:
            return None
        return "\n".join(["Errors:", *(f"\t{m}" for m in self.full_messages())])

    def to_dict(self) -> dict[str, Any]:
        data = {
            "mode": self.mode.value,
            "token_type": self.token_type,
            "key_alg": self.key_alg,
            "key_id": self.key_id,
            "aws_region": self.aws_region,
            "aws_profile": self.aws_profile,
            "token_lifetime": self.token_lifetime,
            "iss": self.iss,
            "aud": self.aud,
            "iat": self.iat,
            "exp": self.exp,
        }
        return {k: v for k, v in data.items() if v is not None}


_current: Options | None = None
_lock = threading.Lock()


def current_options() -> Options:
    global _current
    if _current is None:
        with _lock:
            if _current is None:
                _current = Options.defaults()
    return _current


def reset_current_options() -> None:
    global _current
    with _lock:
        _current = None

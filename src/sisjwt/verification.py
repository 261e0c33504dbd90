from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .arn_inventory import ArnInventory
from .headers import CaseInsensitiveDict
from .options import format_messages, is_number
from .runtime import Runtime, current_runtime

# Hard ceiling on token age, regardless of the token's own exp claim.
MAX_ALLOWED_AGE = 3600

NOT_APPROVED = "not on the approved list"


def _on_list(value: Any, allowed: Iterable[str]) -> bool:
    approved = {item.lower() for item in allowed}
    values = value if isinstance(value, list) else [value]
    return any(isinstance(v, str) and v.lower() in approved for v in values)


class VerificationResult:
    """The outcome of verifying a token with :meth:`sisjwt.SisJwt.verify`.

    The result starts with empty issuer and audience allow-lists, so it is
    invalid until the caller says which issuers and audiences it accepts.
    Every change to the allow-lists re-runs the checks, so ``valid`` and
    ``errors`` always describe the current lists.
    """

    def __init__(
        self,
        headers: Mapping[str, Any] | None,
        payload: Mapping[str, Any] | None,
        error: str | BaseException | None = None,
        *,
        inventory: ArnInventory | None = None,
        runtime: Runtime | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.headers = CaseInsensitiveDict(headers)
        self.payload: dict[str, Any] = dict(payload or {})
        self.jwt_error = str(error) if error else None
        self.inventory = inventory
        self.runtime = runtime or current_runtime()
        self._clock = clock

        now = int(self._clock())
        iat = self.payload.get("iat")
        exp = self.payload.get("exp")
        self.iat: float = iat if is_number(iat) else now
        # No exp claim means the token is already expired, never unbounded.
        self.exp: float = exp if is_number(exp) else now - 1

        self.token_type = self.headers.get("alg")
        self.initial_lifetime = int(self.exp - self.iat)
        self.iss = self.payload.get("iss")
        self.aud = self.payload.get("aud")

        self._allowed_iss: list[str] = []
        self._allowed_aud: list[str] = []
        self.errors: dict[str, list[str]] = {}
        self._dict: dict[str, Any] | None = None
        self._mark_dirty()

    @classmethod
    def error(cls, message: str | BaseException, **kwargs: Any) -> VerificationResult:
        return cls(None, None, error=message, **kwargs)

    @property
    def key_id(self) -> str | None:
        return self.headers.get("kid")

    @property
    def life_left(self) -> int:
        """Seconds until the token expires."""
        return int(self.exp - int(self._clock()))

    @property
    def age(self) -> int:
        """Seconds since the token was issued."""
        return int(self._clock()) - int(self.iat)

    @property
    def expired(self) -> bool:
        return self.life_left <= 0

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def allowed_iss(self) -> tuple[str, ...]:
        return tuple(self._allowed_iss)

    @property
    def allowed_aud(self) -> tuple[str, ...]:
        return tuple(self._allowed_aud)

    def add_allowed_iss(self, iss: str | Iterable[str] | None) -> None:
        self._add_allowed(self._allowed_iss, iss)

    def add_allowed_aud(self, aud: str | Iterable[str] | None) -> None:
        self._add_allowed(self._allowed_aud, aud)

    def clear_allowed(self) -> None:
        self._allowed_iss = []
        self._allowed_aud = []
        self._mark_dirty()

    def full_messages(self) -> list[str]:
        return format_messages(self.errors)

    def to_dict(self) -> dict[str, Any]:
        if self._dict is None:
            data: dict[str, Any] = {
                "headers": self.headers.to_dict(),
                "payload": dict(self.payload),
                "allowed": {"aud": list(self._allowed_aud), "iss": list(self._allowed_iss)},
                "valid": self.valid,
                "errors": {attr: list(msgs) for attr, msgs in self.errors.items()},
            }
            if not self.runtime.production:
                data["lifetime"] = {
                    "life_left": self.life_left,
                    "age": self.age,
                    "expired": self.expired,
                }
            self._dict = data
        return self._dict

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def __repr__(self) -> str:
        return (
            f"VerificationResult(token_type={self.token_type!r}, iss={self.iss!r}, "
            f"aud={self.aud!r}, valid={self.valid!r}, errors={self.errors!r})"
        )

    def _add_allowed(self, target: list[str], values: str | Iterable[str] | None) -> None:
        if values is None or isinstance(values, str):
            values = [values] if values else []
        changed = False
        for value in values:
            if value is None or not str(value).strip() or str(value) in target:
                continue
            target.append(str(value))
            changed = True
        if changed:
            self._mark_dirty()

    def _mark_dirty(self) -> None:
        self._dict = None
        self.errors = self._validate()

    def _validate(self) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}

        def add(attr: str, message: str) -> None:
            errors.setdefault(attr, []).append(message)

        if self.jwt_error:
            add("base", self.jwt_error)
            # Without any token data the remaining checks only add noise.
            if not self.headers and not self.payload:
                return errors

        if self.age > MAX_ALLOWED_AGE:
            add("base", "Token is longer lived than allowed")
        if self.expired:
            add("base", "Token is expired")

        iss_approved = _on_list(self.iss, self._allowed_iss)
        if not iss_approved:
            add("iss", NOT_APPROVED)
        if not _on_list(self.aud, self._allowed_aud):
            add("aud", NOT_APPROVED)

        if iss_approved and self.inventory is not None and not self.inventory.empty:
            if not self.inventory.is_valid_arn(self.iss, self.key_id):
                add("kid", f"is not registered to issuer '{self.iss}'")

        return errors

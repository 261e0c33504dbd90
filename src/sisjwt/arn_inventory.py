"""Which KMS keys each issuer is allowed to sign with.

The inventory is a YAML file keyed by environment, then issuer::

    production:
      SIE:
        - arn:aws:kms:us-west-2:111122223333:key/aaaa
      SIC:
        - ${SIC_KEY_ARN}

``${VAR}`` references are expanded from the process environment before
the file is parsed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .errors import InventoryFileError, InventoryFileNotFoundError
from .runtime import current_runtime
from .settings import SisjwtSettings, current_settings

logger = logging.getLogger(__name__)


class ArnInventory:
    def __init__(self, inventory: dict[str, list[str]] | None = None) -> None:
        self._inventory: dict[str, list[str]] = dict(inventory or {})

    @classmethod
    def from_settings(cls, settings: SisjwtSettings) -> ArnInventory:
        inventory = cls()
        if settings.inventory_path:
            inventory.add_from_config(settings.inventory_path, env=settings.inventory_env)
        return inventory

    def add_from_config(self, path: str | Path, env: str | None = None) -> None:
        path = Path(path)
        if not path.is_file():
            raise InventoryFileNotFoundError(f"inventory file not found: {path}")

        try:
            config = yaml.safe_load(os.path.expandvars(path.read_text(encoding="utf-8")))
        except yaml.YAMLError as exc:
            raise InventoryFileError(f"Inventory file {path} is not valid YAML: {exc}") from exc

        env = env or current_settings().inventory_env or current_runtime().environment
        if not isinstance(config, dict) or env not in config:
            raise InventoryFileError(
                f"Could not find requested environment ({env}) in inventory file {path}"
            )
        section = config[env]
        if not isinstance(section, dict):
            raise InventoryFileError("Inventory file is malformed!")

        self._inventory = {str(iss): _arn_list(arns) for iss, arns in section.items()}
        logger.debug("loaded %d issuers from %s (%s)", len(self._inventory), path, env)

    @property
    def empty(self) -> bool:
        return not self._inventory

    def issuers(self) -> list[str]:
        return list(self._inventory)

    def is_valid_arn(self, issuer: str | None, arn: str | None) -> bool:
        """Issuer names match without regard to case."""
        if issuer is None or arn is None:
            return False
        wanted = str(issuer).lower()
        return any(
            arn in arns for name, arns in self._inventory.items() if name.lower() == wanted
        )

    def find_issuer(self, arn: str) -> str | None:
        for issuer, arns in self._inventory.items():
            if arn in arns:
                return issuer
        return None


def _arn_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    raise InventoryFileError("Inventory file is malformed!")

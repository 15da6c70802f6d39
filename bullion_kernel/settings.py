"""
Settings loader (``bullion_kernel.settings``).

Responsibility
--------------
Loads the kernel's runtime settings from YAML into frozen dataclasses.
Defaults ship beside this module in ``settings.yaml``; a deployment may
overlay a second YAML file and a small set of environment variables.

Architecture position
---------------------
**Infrastructure** -- imported by the engine wiring (``PostingEngine``) and
by tests.  Domain code and posting rules never read settings directly; they
receive the values they need through constructors.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required section or key  -> ``KeyError`` propagates.

Environment overrides
---------------------
* ``BULLION_DATABASE_URL`` (falls back to ``DATABASE_URL``)
* ``BULLION_LOG_LEVEL``
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_SETTINGS_PATH = Path(__file__).with_name("settings.yaml")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class PostingSettings:
    """Retry, timeout and currency settings for the orchestrator."""

    max_attempts: int = 3
    retry_base_delay_seconds: float = 0.05
    retry_max_delay_seconds: float = 1.0
    transaction_timeout_seconds: float = 30.0
    base_currency: str = "AED"
    required_currencies: tuple[str, ...] = ("USD", "AED")
    cash_decimal_places: int = 2

    @property
    def cash_quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.cash_decimal_places)


@dataclass(frozen=True)
class VoucherSettings:
    """Voucher cache freshness, rendering defaults and the kind -> module map."""

    cache_ttl_seconds: float = 300.0
    default_number_length: int = 4
    default_date_format: str = "YYYY-MM-DD"
    modules: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def module_for(self, source_kind: str, kind: str) -> str:
        """Resolve the voucher module for an event kind.

        Raises:
            KeyError: If no module is mapped for (source_kind, kind).
        """
        return self.modules[source_kind][kind]


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class BullionSettings:
    database: DatabaseSettings
    posting: PostingSettings
    vouchers: VoucherSettings
    logging: LoggingSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_settings(data: Mapping[str, Any]) -> BullionSettings:
    """Parse a settings dict (already merged) into ``BullionSettings``."""
    db = data["database"]
    posting = data["posting"]
    vouchers = data["vouchers"]
    log = data.get("logging") or {}

    return BullionSettings(
        database=DatabaseSettings(
            url=db["url"],
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 20)),
            max_overflow=int(db.get("max_overflow", 10)),
        ),
        posting=PostingSettings(
            max_attempts=int(posting["max_attempts"]),
            retry_base_delay_seconds=float(posting["retry_base_delay_seconds"]),
            retry_max_delay_seconds=float(posting["retry_max_delay_seconds"]),
            transaction_timeout_seconds=float(posting["transaction_timeout_seconds"]),
            base_currency=str(posting["base_currency"]).upper(),
            required_currencies=tuple(
                str(c).upper() for c in posting.get("required_currencies", ())
            ),
            cash_decimal_places=int(posting.get("cash_decimal_places", 2)),
        ),
        vouchers=VoucherSettings(
            cache_ttl_seconds=float(vouchers["cache_ttl_seconds"]),
            default_number_length=int(vouchers["default_number_length"]),
            default_date_format=str(vouchers["default_date_format"]),
            modules={
                source_kind: dict(mapping)
                for source_kind, mapping in vouchers["modules"].items()
            },
        ),
        logging=LoggingSettings(level=str(log.get("level", "INFO")).upper()),
    )


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> BullionSettings:
    """
    Load settings: packaged defaults, then ``path`` overlay, then environment.

    Args:
        path: Optional YAML file whose keys override the defaults.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        Frozen ``BullionSettings``.
    """
    env = os.environ if env is None else env
    data = load_yaml_file(DEFAULT_SETTINGS_PATH)
    if path is not None:
        data = _merge(data, load_yaml_file(Path(path)))

    database_url = env.get("BULLION_DATABASE_URL") or env.get("DATABASE_URL")
    if database_url:
        data = _merge(data, {"database": {"url": database_url}})
    log_level = env.get("BULLION_LOG_LEVEL")
    if log_level:
        data = _merge(data, {"logging": {"level": log_level}})

    return parse_settings(data)


@lru_cache(maxsize=1)
def get_settings() -> BullionSettings:
    """Return the process-wide settings, loaded once."""
    return load_settings()


def reset_settings() -> None:
    """Clear the cached settings. FOR TESTING ONLY."""
    get_settings.cache_clear()

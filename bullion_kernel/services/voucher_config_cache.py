"""
Voucher configuration providers.

Responsibility:
    Resolve the active VoucherMaster of a module into an immutable
    VoucherConfig.  CachingVoucherConfigProvider keeps a process-wide map
    from lowercased module to ``(config, loaded_at)`` with TTL freshness;
    UncachedVoucherConfigProvider reads through on every call (tests).

Architecture position:
    Kernel > Services.  The only in-process shared mutable state of the
    kernel.  Handed to TransactionOrchestrator explicitly and consulted by
    VoucherAllocator.  VoucherMasterService invalidates it on mutation.

Invariants enforced:
    - Reads are lock-free: the entry map is replaced wholesale on every
      write (copy-on-write), so a reader sees either the old or the new
      dict, never a partially updated one.
    - Loads for one module are serialized by a per-module lock; loads for
      different modules proceed in parallel.
    - invalidate() bumps a generation counter.  A load that started before
      an invalidation never stores its result, so a stale config is never
      served after a local invalidation.
    - Only frozen VoucherConfig DTOs are cached, never ORM instances.

Failure modes:
    - MissingModuleError for a blank module.
    - VoucherConfigNotFoundError when no active configuration exists.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bullion_kernel.exceptions import MissingModuleError, VoucherConfigNotFoundError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.voucher import VoucherMaster

logger = get_logger("services.voucher_config_cache")


@dataclass(frozen=True)
class VoucherConfig:
    """Immutable snapshot of one VoucherMaster row."""

    id: UUID
    voucher_type: str
    module: str
    prefix: str
    number_length: int
    date_format: str
    is_auto_increment: bool
    include_date_in_number: bool = False
    code: str | None = None
    description: str = ""

    @classmethod
    def from_model(cls, master: VoucherMaster) -> "VoucherConfig":
        return cls(
            id=master.id,
            voucher_type=master.voucher_type,
            module=master.module,
            prefix=master.prefix,
            number_length=master.number_length,
            date_format=master.date_format,
            is_auto_increment=master.is_auto_increment,
            include_date_in_number=master.include_date_in_number,
            code=master.code,
            description=master.description,
        )


def normalize_module(module: str | None) -> str:
    if module is None or not str(module).strip():
        raise MissingModuleError()
    return str(module).strip().lower()


def load_voucher_config(session: Session, module: str) -> VoucherConfig:
    """Read the active configuration of ``module`` (case-insensitive)."""
    key = normalize_module(module)
    master = session.execute(
        select(VoucherMaster)
        .where(
            func.lower(VoucherMaster.module) == key,
            VoucherMaster.is_active.is_(True),
            VoucherMaster.status == "active",
        )
        .order_by(VoucherMaster.created_at, VoucherMaster.voucher_type)
        .limit(1)
    ).scalar_one_or_none()
    if master is None:
        raise VoucherConfigNotFoundError(key)
    return VoucherConfig.from_model(master)


class VoucherConfigProvider(Protocol):
    def get(self, session: Session, module: str) -> VoucherConfig: ...

    def invalidate(self, module: str | None = None) -> None: ...


@dataclass(frozen=True)
class _CacheEntry:
    config: VoucherConfig
    loaded_at: float


class CachingVoucherConfigProvider:
    """
    TTL cache of voucher configurations.

    Contract:
        ``get`` returns a config at most ``ttl_seconds`` old, or one loaded
        after the most recent ``invalidate`` touching its module.

    Non-goals:
        - Cross-process coherence.  Other processes converge within the TTL.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        monotonic: Callable[[], float] = time.monotonic,
        loader: Callable[[Session, str], VoucherConfig] = load_voucher_config,
    ):
        self._ttl = ttl_seconds
        self._monotonic = monotonic
        self._loader = loader
        self._entries: dict[str, _CacheEntry] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        self._generation = 0

    def _fresh(self, key: str) -> VoucherConfig | None:
        entry = self._entries.get(key)
        if entry is not None and self._monotonic() - entry.loaded_at < self._ttl:
            return entry.config
        return None

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get(self, session: Session, module: str) -> VoucherConfig:
        key = normalize_module(module)
        config = self._fresh(key)
        if config is not None:
            logger.debug("voucher_cache_hit", extra={"voucher_module": key})
            return config

        with self._lock_for(key):
            config = self._fresh(key)
            if config is not None:
                logger.debug("voucher_cache_hit", extra={"voucher_module": key})
                return config

            generation = self._generation
            config = self._loader(session, key)
            loaded_at = self._monotonic()
            with self._guard:
                if generation == self._generation:
                    entries = dict(self._entries)
                    entries[key] = _CacheEntry(config=config, loaded_at=loaded_at)
                    self._entries = entries
            logger.debug("voucher_cache_miss", extra={"voucher_module": key})
            return config

    def invalidate(self, module: str | None = None) -> None:
        with self._guard:
            self._generation += 1
            if module is None:
                self._entries = {}
            else:
                entries = dict(self._entries)
                entries.pop(normalize_module(module), None)
                self._entries = entries
        logger.info(
            "voucher_cache_invalidated",
            extra={"voucher_module": module.strip().lower() if module else None},
        )

    def cached_modules(self) -> tuple[str, ...]:
        return tuple(sorted(self._entries))


class UncachedVoucherConfigProvider:
    """Reads through to the database on every call."""

    def __init__(
        self,
        loader: Callable[[Session, str], VoucherConfig] = load_voucher_config,
    ):
        self._loader = loader

    def get(self, session: Session, module: str) -> VoucherConfig:
        return self._loader(session, module)

    def invalidate(self, module: str | None = None) -> None:
        return None

"""
Service layer for voucher configuration (VoucherMaster).

Every mutation invalidates the voucher config provider for the affected
module, so the next allocation in this process reads the new row.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.vouchers import validate_date_format, validate_prefix
from bullion_kernel.exceptions import (
    DuplicateVoucherTypeModuleError,
    EntityNotFoundError,
    InvalidQuantityError,
    MissingFieldError,
)
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.voucher import VoucherMaster
from bullion_kernel.services.base import BaseService
from bullion_kernel.services.voucher_config_cache import (
    UncachedVoucherConfigProvider,
    VoucherConfig,
    VoucherConfigProvider,
    normalize_module,
)

logger = get_logger("services.voucher_master")

_UPDATABLE = (
    "voucher_type",
    "module",
    "prefix",
    "number_length",
    "date_format",
    "description",
    "code",
    "is_auto_increment",
    "include_date_in_number",
    "is_active",
    "status",
)


class VoucherMasterService(BaseService[VoucherMaster]):
    """
    CRUD over voucher configurations.

    Guarantees:
        - (voucher_type, module) stays unique among all rows.
        - module is stored lowercased; prefix uppercased.
    """

    model = VoucherMaster

    def __init__(
        self,
        session: Session,
        clock: Clock,
        config_provider: VoucherConfigProvider | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._provider = config_provider or UncachedVoucherConfigProvider()

    def _get(self, voucher_id: UUID) -> VoucherMaster:
        master = self._fetch(voucher_id)
        if master is None:
            raise EntityNotFoundError("VoucherMaster", str(voucher_id))
        return master

    def _ensure_unique(
        self, voucher_type: str, module: str, exclude_id: UUID | None = None
    ) -> None:
        query = select(VoucherMaster.id).where(
            VoucherMaster.voucher_type == voucher_type,
            func.lower(VoucherMaster.module) == module,
        )
        if exclude_id is not None:
            query = query.where(VoucherMaster.id != exclude_id)
        if self.session.execute(query).first() is not None:
            raise DuplicateVoucherTypeModuleError(voucher_type, module)

    @staticmethod
    def _number_length(value) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidQuantityError("number_length", value)
        return value

    def create(
        self,
        actor_id: UUID,
        voucher_type: str,
        module: str,
        prefix: str,
        number_length: int = 4,
        date_format: str | None = None,
        description: str = "",
        code: str | None = None,
        is_auto_increment: bool = True,
        include_date_in_number: bool = False,
    ) -> VoucherConfig:
        """
        Create a voucher configuration.

        Raises:
            MissingModuleError: Blank module.
            InvalidIdentifierError: Prefix not 1-5 uppercase alphanumerics.
            InvalidEnumError: Unsupported date format.
            DuplicateVoucherTypeModuleError: (voucher_type, module) exists.
        """
        voucher_type = (voucher_type or "").strip()
        if not voucher_type:
            raise MissingFieldError("voucher_type")
        key = normalize_module(module)
        self._ensure_unique(voucher_type, key)

        master = VoucherMaster(
            voucher_type=voucher_type,
            module=key,
            prefix=validate_prefix(prefix),
            number_length=self._number_length(number_length),
            date_format=validate_date_format(date_format),
            description=description,
            code=code,
            sequence=1,
            is_auto_increment=is_auto_increment,
            include_date_in_number=include_date_in_number,
            is_active=True,
            status="active",
            created_by_id=actor_id,
        )
        self.session.add(master)
        self.session.flush()
        self._provider.invalidate(key)

        logger.info(
            "voucher_master_created",
            extra={
                "voucher_module": key,
                "voucher_type": voucher_type,
                "prefix": master.prefix,
            },
        )
        return VoucherConfig.from_model(master)

    def update(self, voucher_id: UUID, actor_id: UUID, **changes) -> VoucherConfig:
        """
        Update selected fields of a configuration.

        Raises:
            EntityNotFoundError: Unknown id.
            ValueError: An unknown field name was passed.
        """
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Unknown voucher master fields: {sorted(unknown)}")

        master = self._get(voucher_id)
        old_module = master.module

        if "module" in changes:
            changes["module"] = normalize_module(changes["module"])
        if "prefix" in changes:
            changes["prefix"] = validate_prefix(changes["prefix"])
        if "date_format" in changes:
            changes["date_format"] = validate_date_format(changes["date_format"])
        if "number_length" in changes:
            changes["number_length"] = self._number_length(changes["number_length"])

        voucher_type = changes.get("voucher_type", master.voucher_type)
        module = changes.get("module", master.module)
        if voucher_type != master.voucher_type or module != master.module:
            self._ensure_unique(voucher_type, module, exclude_id=master.id)

        for name, value in changes.items():
            setattr(master, name, value)
        master.mark_updated(actor_id)
        self.session.flush()

        self._provider.invalidate(old_module)
        if master.module != old_module:
            self._provider.invalidate(master.module)

        logger.info(
            "voucher_master_updated",
            extra={"voucher_module": master.module, "fields": sorted(changes)},
        )
        return VoucherConfig.from_model(master)

    def delete(self, voucher_id: UUID, actor_id: UUID) -> None:
        """Soft delete: the row stays, invisible to the allocator."""
        master = self._get(voucher_id)
        master.is_active = False
        master.status = "inactive"
        master.mark_updated(actor_id)
        self.session.flush()
        self._provider.invalidate(master.module)
        logger.info("voucher_master_deleted", extra={"voucher_module": master.module})

    def get(self, voucher_id: UUID) -> VoucherConfig:
        return VoucherConfig.from_model(self._get(voucher_id))

    def list(self, module: str | None = None, active_only: bool = True) -> list[VoucherConfig]:
        query = select(VoucherMaster)
        if module is not None:
            query = query.where(func.lower(VoucherMaster.module) == normalize_module(module))
        if active_only:
            query = query.where(
                VoucherMaster.is_active.is_(True), VoucherMaster.status == "active"
            )
        masters = self.session.execute(
            query.order_by(VoucherMaster.module, VoucherMaster.voucher_type)
        ).scalars()
        return [VoucherConfig.from_model(m) for m in masters]

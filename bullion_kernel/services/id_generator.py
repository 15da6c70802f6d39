"""
TransactionIdGenerator -- random business transaction ids with existence retry.

Responsibility:
    Mints the human-facing transaction ids of fixings
    (``PUR12345`` / ``SEL12345``) and fund transfers (``TXN-2024-123``).
    Each candidate is drawn from an injectable ``random.Random`` and
    checked against its collection; a taken id is redrawn.

Architecture position:
    Kernel > Services.  Called by the fixing and fund-transfer handlers
    during create.

Failure modes:
    - TransactionIdExhaustedError after MAX_ATTEMPTS taken candidates.
    - A concurrent insert of the same id still fails on the unique index
      and the orchestrator retries the transaction.
"""

import random

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.events import FixingType
from bullion_kernel.exceptions import TransactionIdExhaustedError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.fixing import TransactionFixing
from bullion_kernel.models.fund_transfer import FundTransfer

logger = get_logger("services.id_generator")

_FIXING_PREFIXES = {FixingType.PURCHASE: "PUR", FixingType.SALE: "SEL"}


class TransactionIdGenerator:
    MAX_ATTEMPTS = 20

    def __init__(self, session: Session, clock: Clock, rng: random.Random | None = None):
        self._session = session
        self._clock = clock
        self._rng = rng or random.Random()

    def fixing_id(self, fixing_type: FixingType) -> str:
        prefix = _FIXING_PREFIXES[fixing_type]
        return self._draw(
            "fixing",
            lambda: f"{prefix}{self._rng.randint(10000, 99999)}",
            TransactionFixing.transaction_id,
        )

    def transfer_id(self) -> str:
        year = self._clock.today().year
        return self._draw(
            "transfer",
            lambda: f"TXN-{year}-{self._rng.randint(100, 999)}",
            FundTransfer.transaction_id,
        )

    def _draw(self, scheme: str, candidate, column) -> str:
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            value = candidate()
            taken = self._session.execute(
                select(column).where(column == value).limit(1)
            ).first()
            if taken is None:
                return value
            logger.debug(
                "transaction_id_collision",
                extra={"scheme": scheme, "candidate": value, "attempt": attempt},
            )
        raise TransactionIdExhaustedError(scheme, self.MAX_ATTEMPTS)

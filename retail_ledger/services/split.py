"""Payment split resolver"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from fastapi import Depends
from retail_ledger.config import Config, get_config
from retail_ledger.errors.ledger import InvalidAmount
from retail_ledger.errors.split import SplitMismatch
from retail_ledger.money import to_money
from retail_ledger.schemas.split import SplitRowInputSchema
from retail_ledger.services.payment_method import PaymentMethodService

logger = logging.getLogger(__name__)


@dataclass
class SplitRow:
    # position in the submitted list, kept stable for derived idempotency keys
    index: int
    payment_method_id: int
    amount: Decimal

    def idempotency_key(
        self, key: str | None, namespace: str | None = None
    ) -> str | None:
        """'K1' -> 'K1:0', or 'SALE:K1:0' when namespaced by the calling action."""
        if not key:
            return None
        if namespace:
            return f"{namespace}:{key}:{self.index}"
        return f"{key}:{self.index}"


class PaymentSplitService:
    def __init__(
        self,
        payment_method_service: PaymentMethodService = Depends(),
        config: Config = Depends(get_config),
    ):
        self._payment_method_service = payment_method_service
        self.config = config

    def resolve_splits(
        self,
        requested_total: Decimal,
        rows: list[SplitRowInputSchema] | None = None,
        fallback_method: int | str | None = None,
    ) -> list[SplitRow]:
        """
        Turn client split rows into concrete (method id, amount) rows whose
        amounts add up to `requested_total`.

        No rows means a single row for the fallback method (cash when none).
        """
        total = to_money(requested_total)
        if total <= 0:
            raise InvalidAmount(f"total={total}")

        if not rows:
            method = self._payment_method_service.resolve(fallback_method)
            return [SplitRow(index=0, payment_method_id=method.id, amount=total)]

        resolved = []
        for index, row in enumerate(rows):
            amount = to_money(row.amount)
            if amount <= 0:
                raise InvalidAmount(f"split row {index} amount={amount}")
            method = self._payment_method_service.resolve(row.method)
            resolved.append(
                SplitRow(index=index, payment_method_id=method.id, amount=amount)
            )

        split_sum = sum((row.amount for row in resolved), Decimal("0.00"))
        if abs(split_sum - total) > self.config.split_tolerance:
            raise SplitMismatch(f"splits sum to {split_sum}, expected {total}")
        logger.debug("Resolved %d split rows for total %s", len(resolved), total)
        return resolved

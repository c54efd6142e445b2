"""Payment method directory service"""

import logging
import re

from fastapi import Depends
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.errors.split import InvalidPaymentMethod
from retail_ledger.models.customer_payment import CustomerPayment
from retail_ledger.models.payment_method import PaymentMethod, PaymentMethodCode
from retail_ledger.models.treasury_entry import TreasuryEntry
from retail_ledger.schemas.payment_method import PaymentMethodCreateSchema
from retail_ledger.services.base import BaseService
from retail_ledger.uow import get_uow
from sqlalchemy import func
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_ALIAS_NOISE = re.compile(r"[\s_\-]+")


def alias_key(value: str) -> str:
    """'Vodafone-Cash' -> 'vodafonecash'"""
    return _ALIAS_NOISE.sub("", value.strip().lower())


# free-text names seen on receipts, mapped onto the closed set of codes
PAYMENT_METHOD_ALIASES: dict[str, PaymentMethodCode] = {
    "cash": PaymentMethodCode.CASH,
    "نقدي": PaymentMethodCode.CASH,
    "نقدا": PaymentMethodCode.CASH,
    "كاش": PaymentMethodCode.CASH,
    "visa": PaymentMethodCode.VISA,
    "فيزا": PaymentMethodCode.VISA,
    "mastercard": PaymentMethodCode.MASTERCARD,
    "ماستركارد": PaymentMethodCode.MASTERCARD,
    "banktransfer": PaymentMethodCode.BANK_TRANSFER,
    "bank": PaymentMethodCode.BANK_TRANSFER,
    "تحويلبنكي": PaymentMethodCode.BANK_TRANSFER,
    "vodafonecash": PaymentMethodCode.VODAFONE_CASH,
    "vodafone": PaymentMethodCode.VODAFONE_CASH,
    "فودافونكاش": PaymentMethodCode.VODAFONE_CASH,
    "instapay": PaymentMethodCode.INSTAPAY,
    "انستاباي": PaymentMethodCode.INSTAPAY,
}


class PaymentMethodService(BaseService[PaymentMethod]):
    model = PaymentMethod

    def __init__(self, db: Session = Depends(get_uow)):
        self.db = db

    def create(self, schema: PaymentMethodCreateSchema) -> PaymentMethod:  # type: ignore[override]
        code = _ALIAS_NOISE.sub("_", schema.code.strip()).upper()
        if self.db.query(PaymentMethod.id).filter(PaymentMethod.code == code).first():
            raise ConstraintViolation(f"Payment method code {code!r} is already used")
        return super().create(schema, overrides={"code": code})

    def delete(self, obj_id: int) -> int:  # type: ignore[override]
        """Delete a payment method nothing refers to."""
        for model in (TreasuryEntry, CustomerPayment):
            used = (
                self.db.query(model.id)
                .filter(model.payment_method_id == obj_id)
                .first()
            )
            if used is not None:
                raise ConstraintViolation(
                    f"PaymentMethod id={obj_id} is used by {model.__name__}"
                )
        return super().delete(obj_id)

    def _lookup(self, reference: int | str) -> PaymentMethod | None:
        if isinstance(reference, int) or (
            isinstance(reference, str) and reference.strip().isdigit()
        ):
            return self.db.get(PaymentMethod, int(reference))

        text = reference.strip()
        method = (
            self.db.query(PaymentMethod)
            .filter(func.upper(PaymentMethod.code) == text.upper())
            .first()
        )
        if method is not None:
            return method
        method = (
            self.db.query(PaymentMethod)
            .filter(func.lower(PaymentMethod.name) == text.lower())
            .first()
        )
        if method is not None:
            return method

        code = PAYMENT_METHOD_ALIASES.get(alias_key(text))
        if code is None:
            # "Bank Transfer" -> BANK_TRANSFER
            normalized = alias_key(text).upper()
            code = next(
                (c for c in PaymentMethodCode if alias_key(c.value).upper() == normalized),
                None,
            )
        if code is None:
            return None
        return (
            self.db.query(PaymentMethod)
            .filter(PaymentMethod.code == code.value)
            .first()
        )

    def resolve(self, reference: int | str | None) -> PaymentMethod:
        """
        Resolve a numeric id, a code or a display name to an active method.
        Nothing supplied means cash.
        """
        if reference is None or (isinstance(reference, str) and not reference.strip()):
            reference = PaymentMethodCode.CASH.value
        method = self._lookup(reference)
        if method is None or not method.is_active:
            logger.debug("Payment method %r did not resolve", reference)
            raise InvalidPaymentMethod(repr(reference))
        return method

from typing import Type

from retail_ledger.models.base import BaseModel
from retail_ledger.models.payment_method import PaymentMethod, PaymentMethodCode

# commonly used payment methods
cash_method = PaymentMethod(id=1, code=PaymentMethodCode.CASH.value, name="Cash")
visa_method = PaymentMethod(id=2, code=PaymentMethodCode.VISA.value, name="Visa")
mastercard_method = PaymentMethod(
    id=3, code=PaymentMethodCode.MASTERCARD.value, name="Mastercard"
)
bank_transfer_method = PaymentMethod(
    id=4, code=PaymentMethodCode.BANK_TRANSFER.value, name="Bank transfer"
)
vodafone_cash_method = PaymentMethod(
    id=5, code=PaymentMethodCode.VODAFONE_CASH.value, name="Vodafone Cash"
)
instapay_method = PaymentMethod(
    id=6, code=PaymentMethodCode.INSTAPAY.value, name="InstaPay"
)

BOOTSTRAP: dict[Type[BaseModel], list[BaseModel]] = {
    PaymentMethod: [
        cash_method,
        visa_method,
        mastercard_method,
        bank_transfer_method,
        vodafone_cash_method,
        instapay_method,
    ],
}

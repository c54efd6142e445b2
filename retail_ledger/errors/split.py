"""Payment split errors"""

from retail_ledger.errors.base import ApplicationError


class InvalidPaymentMethod(ApplicationError):
    error_code = 6101
    error = "Payment method can not be resolved to an active method"


class SplitMismatch(ApplicationError):
    error_code = 6102
    error = "Sum of split amounts does not match the requested total"

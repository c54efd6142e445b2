"""Common application errors, may be raised from several services"""

from retail_ledger.errors.base import ApplicationError


class NotFoundError(ApplicationError):
    error_code = 1404
    error = "Not found"


class ConstraintViolation(ApplicationError):
    error_code = 1409
    error = "Record is referenced by other records"

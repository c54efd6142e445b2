"""Treasury ledger errors"""

from retail_ledger.errors.base import ApplicationError


class InvalidAmount(ApplicationError):
    error_code = 7001
    error = "Amount must be positive"


class InsufficientBalance(ApplicationError):
    error_code = 7002
    error = "Treasury balance is insufficient"


class EntryDirectionMismatch(ApplicationError):
    error_code = 7003
    error = "Entry direction does not match entry type"


class InvalidTransfer(ApplicationError):
    error_code = 7004
    error = "Source and target treasuries must be different"

"""Treasury errors"""

from retail_ledger.errors.base import ApplicationError


class TreasuryNotFound(ApplicationError):
    error_code = 8002
    error = "Treasury not found"


class TreasuryInactive(ApplicationError):
    error_code = 8003
    error = "Treasury is inactive or deleted"


class LastActiveTreasury(ApplicationError):
    error_code = 8004
    error = "At least one active treasury must exist"

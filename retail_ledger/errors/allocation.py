"""Payment allocation errors"""

from retail_ledger.errors.base import ApplicationError


class AllocationOverrun(ApplicationError):
    error_code = 9001
    error = "Allocation exceeds the outstanding amount of the invoice"

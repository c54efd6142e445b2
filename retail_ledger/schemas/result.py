"""Discriminated result returned by the in-process ledger boundary"""

from typing import Generic, TypeVar

from retail_ledger.errors.base import ApplicationError
from retail_ledger.schemas.base import BaseSchema

T = TypeVar("T")


class OperationResult(BaseSchema, Generic[T]):
    ok: bool
    data: T | None = None
    error_code: int | None = None
    error: str | None = None
    where: str | None = None

    @classmethod
    def success(cls, data: T) -> "OperationResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, exc: ApplicationError) -> "OperationResult[T]":
        return cls(
            ok=False,
            error_code=exc.error_code,
            error=exc.error,
            where=exc.where,
        )

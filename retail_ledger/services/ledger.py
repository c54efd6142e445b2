"""Treasury ledger engine.

Appends immutable entries against treasuries and keeps every treasury's
cached `current_balance` equal to its opening balance plus the signed sum of
its entries. Balance changes happen only under a row lock on the treasury;
retried writes are made safe with idempotency keys guarded by an advisory
lock, and business objects are unwound with `rollback_by_reference`.
"""

import datetime
import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from fastapi import Depends
from retail_ledger.errors.common import ConstraintViolation, NotFoundError
from retail_ledger.errors.ledger import (
    EntryDirectionMismatch,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransfer,
)
from retail_ledger.models.payment_allocation import PaymentAllocation
from retail_ledger.models.treasury import Treasury
from retail_ledger.models.treasury_entry import (
    EntryDirection,
    EntryType,
    ReferenceType,
    TreasuryEntry,
)
from retail_ledger.money import ZERO, to_money
from retail_ledger.schemas.treasury_entry import (
    ManualTransactionType,
    ReferenceSchema,
    TreasuryEntryFiltersSchema,
    TreasuryTransactionCreateSchema,
)
from retail_ledger.services.audit import AuditService
from retail_ledger.services.default_treasury import DefaultTreasuryService
from retail_ledger.services.locks import acquire_advisory_lock, lock_treasuries
from retail_ledger.uow import get_uow
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)


@dataclass
class PostedEntry:
    entry: TreasuryEntry
    # True when an entry with the same idempotency key already existed
    idempotent: bool


@dataclass
class TransferResult:
    out_entry: TreasuryEntry
    in_entry: TreasuryEntry


@dataclass
class ManualTransactionResult:
    entries: list[TreasuryEntry]
    idempotent: bool


@dataclass
class EntriesPage:
    items: list[TreasuryEntry]
    total: int
    skip: int
    limit: int
    summary: dict[str, Decimal]


class LedgerService:
    def __init__(
        self,
        db: Session = Depends(get_uow),
        default_treasury_service: DefaultTreasuryService = Depends(),
        audit_service: AuditService = Depends(),
    ):
        self.db = db
        self._default_treasury_service = default_treasury_service
        self._audit_service = audit_service

    def get(self, entry_id: int) -> TreasuryEntry:
        entry = self.db.get(TreasuryEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"TreasuryEntry id={entry_id}")
        return entry

    def _find_by_idempotency_key(self, key: str) -> TreasuryEntry | None:
        return self.db.execute(
            select(TreasuryEntry).where(TreasuryEntry.idempotency_key == key)
        ).scalar_one_or_none()

    @staticmethod
    def _check_replay(
        existing: TreasuryEntry,
        *,
        treasury_id: int,
        entry_type: EntryType,
        amount: Decimal,
        reference: ReferenceSchema | None,
    ) -> None:
        """A stored key only answers the request that created it."""
        stored = (
            existing.treasury_id,
            existing.entry_type,
            to_money(existing.amount),
            existing.reference_type,
            existing.reference_id,
        )
        requested = (
            treasury_id,
            entry_type,
            amount,
            reference.kind if reference else None,
            reference.id if reference else None,
        )
        if stored != requested:
            raise ConstraintViolation(
                f"idempotency key {existing.idempotency_key!r} belongs to entry "
                f"id={existing.id} with a different payload"
            )

    @staticmethod
    def _check_direction(
        entry_type: EntryType, direction: EntryDirection | None
    ) -> EntryDirection:
        if direction is None:
            return entry_type.direction
        if direction != entry_type.direction:
            raise EntryDirectionMismatch(
                f"{entry_type.value} is {entry_type.direction.value}, got {direction.value}"
            )
        return direction

    def _append(
        self,
        treasury: Treasury,
        *,
        entry_type: EntryType,
        direction: EntryDirection,
        amount: Decimal,
        allow_negative: bool,
        reference: ReferenceSchema | None = None,
        payment_method_id: int | None = None,
        entry_date: datetime.datetime | None = None,
        idempotency_key: str | None = None,
        meta: dict | None = None,
        comment: str | None = None,
    ) -> TreasuryEntry:
        """Apply one entry to an already locked treasury."""
        balance_before = to_money(treasury.current_balance)
        if direction == EntryDirection.IN:
            balance_after = balance_before + amount
        else:
            balance_after = balance_before - amount
        if balance_after < 0 and not allow_negative:
            raise InsufficientBalance(
                f"treasury id={treasury.id} balance={balance_before} amount={amount}"
            )
        # balance and entry land together or not at all
        with self.db.begin_nested():
            treasury.current_balance = balance_after
            treasury.modified_at = datetime.datetime.now()
            entry = TreasuryEntry(
                treasury_id=treasury.id,
                entry_type=entry_type,
                direction=direction,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                reference_type=reference.kind if reference else None,
                reference_id=reference.id if reference else None,
                payment_method_id=payment_method_id,
                idempotency_key=idempotency_key,
                entry_date=entry_date or datetime.datetime.now(),
                meta=meta,
                comment=comment,
            )
            self.db.add(entry)
            self.db.flush()
        return entry

    def post_entry(
        self,
        *,
        entry_type: EntryType,
        amount: Decimal,
        treasury_id: int | None = None,
        direction: EntryDirection | None = None,
        reference: ReferenceSchema | None = None,
        payment_method_id: int | None = None,
        entry_date: datetime.datetime | None = None,
        idempotency_key: str | None = None,
        allow_negative: bool = False,
        meta: dict | None = None,
        comment: str | None = None,
    ) -> PostedEntry:
        """
        Append one entry to a treasury and move its balance.

        With an idempotency key, a retry of an already applied request returns
        the stored entry with `idempotent=True` and leaves balances untouched.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"amount={amount}")
        direction = self._check_direction(entry_type, direction)
        treasury_id = self._default_treasury_service.resolve_treasury_id(treasury_id)

        if idempotency_key:
            acquire_advisory_lock(self.db, f"treasury-entry:{idempotency_key}")
            existing = self._find_by_idempotency_key(idempotency_key)
            if existing is not None:
                self._check_replay(
                    existing,
                    treasury_id=treasury_id,
                    entry_type=entry_type,
                    amount=amount,
                    reference=reference,
                )
                logger.info(
                    "Idempotent replay of key %r returns entry id=%s",
                    idempotency_key,
                    existing.id,
                )
                return PostedEntry(entry=existing, idempotent=True)

        treasury = lock_treasuries(self.db, [treasury_id])[treasury_id]
        try:
            entry = self._append(
                treasury,
                entry_type=entry_type,
                direction=direction,
                amount=amount,
                allow_negative=allow_negative,
                reference=reference,
                payment_method_id=payment_method_id,
                entry_date=entry_date,
                idempotency_key=idempotency_key,
                meta=meta,
                comment=comment,
            )
        except IntegrityError:
            # a concurrent caller inserted the same key between check and insert
            existing = (
                self._find_by_idempotency_key(idempotency_key)
                if idempotency_key
                else None
            )
            if existing is None:
                raise
            self._check_replay(
                existing,
                treasury_id=treasury_id,
                entry_type=entry_type,
                amount=amount,
                reference=reference,
            )
            logger.warning(
                "Concurrent insert for key %r, returning entry id=%s",
                idempotency_key,
                existing.id,
            )
            return PostedEntry(entry=existing, idempotent=True)

        logger.debug(
            "Posted %s %s %s on treasury id=%s (%s -> %s)",
            entry.entry_type.value,
            entry.direction.value,
            entry.amount,
            entry.treasury_id,
            entry.balance_before,
            entry.balance_after,
        )
        self._audit_service.record(
            "ENTRY_CREATED",
            "TreasuryEntry",
            entry.id,
            {
                "treasury_id": entry.treasury_id,
                "entry_type": entry.entry_type,
                "direction": entry.direction,
                "amount": entry.amount,
                "reference_type": entry.reference_type,
                "reference_id": entry.reference_id,
            },
        )
        return PostedEntry(entry=entry, idempotent=False)

    def rollback_by_reference(self, reference: ReferenceSchema) -> int:
        """
        Reverse and delete every entry of a business object, together with
        the allocations funded by those entries. Returns the number of
        entries removed. Either everything is reversed or nothing is.
        """
        entries = (
            self.db.query(TreasuryEntry)
            .filter(
                TreasuryEntry.reference_type == reference.kind,
                TreasuryEntry.reference_id == reference.id,
            )
            .order_by(TreasuryEntry.id)
            .all()
        )
        if not entries:
            return 0

        reversal: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for entry in entries:
            reversal[entry.treasury_id] -= entry.signed_amount
        entry_ids = [entry.id for entry in entries]

        treasuries = lock_treasuries(self.db, reversal.keys())
        now = datetime.datetime.now()
        with self.db.begin_nested():
            for treasury_id, delta in reversal.items():
                treasury = treasuries[treasury_id]
                treasury.current_balance = to_money(treasury.current_balance + delta)
                treasury.modified_at = now
            self.db.execute(
                delete(PaymentAllocation).where(
                    PaymentAllocation.treasury_entry_id.in_(entry_ids)
                )
            )
            for entry in entries:
                self.db.delete(entry)
            self.db.flush()

        logger.info(
            "Rolled back %d entries of %s id=%s",
            len(entries),
            reference.kind.value,
            reference.id,
        )
        self._audit_service.record(
            "REFERENCE_ROLLED_BACK",
            reference.kind.value,
            reference.id,
            {
                "entry_ids": entry_ids,
                "reversal": dict(reversal),
            },
        )
        return len(entries)

    def transfer(
        self,
        source_treasury_id: int,
        target_treasury_id: int,
        amount: Decimal,
        entry_date: datetime.datetime | None = None,
        comment: str | None = None,
    ) -> TransferResult:
        """
        Move money between two treasuries. The source leg is balance-checked,
        the target leg always accepts the funds. Both legs or neither.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"amount={amount}")
        if source_treasury_id == target_treasury_id:
            raise InvalidTransfer(f"treasury id={source_treasury_id}")
        source_id = self._default_treasury_service.resolve_treasury_id(
            source_treasury_id
        )
        target_id = self._default_treasury_service.resolve_treasury_id(
            target_treasury_id
        )
        locked = lock_treasuries(self.db, [source_id, target_id])

        with self.db.begin_nested():
            out_entry = self._append(
                locked[source_id],
                entry_type=EntryType.TRANSFER_OUT,
                direction=EntryDirection.OUT,
                amount=amount,
                allow_negative=False,
                entry_date=entry_date,
                comment=comment,
            )
            in_entry = self._append(
                locked[target_id],
                entry_type=EntryType.TRANSFER_IN,
                direction=EntryDirection.IN,
                amount=amount,
                allow_negative=True,
                entry_date=entry_date,
                comment=comment,
            )
            # both legs share one reference so a transfer can be rolled back as a unit
            for entry in (out_entry, in_entry):
                entry.reference_type = ReferenceType.TRANSFER
                entry.reference_id = out_entry.id
            out_entry.meta = {
                "counterpart_entry_id": in_entry.id,
                "target_treasury_id": target_id,
            }
            in_entry.meta = {
                "counterpart_entry_id": out_entry.id,
                "source_treasury_id": source_id,
            }
            self.db.flush()

        self._audit_service.record(
            "TRANSFER_CREATED",
            "TreasuryEntry",
            out_entry.id,
            {
                "source_treasury_id": source_id,
                "target_treasury_id": target_id,
                "amount": amount,
                "in_entry_id": in_entry.id,
            },
        )
        return TransferResult(out_entry=out_entry, in_entry=in_entry)

    def post_manual(
        self, schema: TreasuryTransactionCreateSchema
    ) -> ManualTransactionResult:
        """Operator-entered movement: IN, OUT or a transfer."""
        if schema.transaction_type == ManualTransactionType.TRANSFER:
            result = self.transfer(
                schema.source_treasury_id,  # type: ignore[arg-type]
                schema.target_treasury_id,  # type: ignore[arg-type]
                schema.amount,
                entry_date=schema.entry_date,
                comment=schema.comment,
            )
            return ManualTransactionResult(
                entries=[result.out_entry, result.in_entry], idempotent=False
            )

        direction = EntryDirection(schema.transaction_type.value)
        entry_type = schema.entry_type or (
            EntryType.MANUAL_IN
            if direction == EntryDirection.IN
            else EntryType.MANUAL_OUT
        )
        posted = self.post_entry(
            entry_type=entry_type,
            direction=direction,
            amount=schema.amount,
            treasury_id=schema.treasury_id,
            reference=ReferenceSchema(kind=ReferenceType.MANUAL),
            payment_method_id=schema.payment_method_id,
            entry_date=schema.entry_date,
            idempotency_key=schema.idempotency_key,
            allow_negative=schema.allow_negative,
            comment=schema.comment,
        )
        return ManualTransactionResult(
            entries=[posted.entry], idempotent=posted.idempotent
        )

    def _apply_filters(
        self, query: Query[TreasuryEntry], filters: TreasuryEntryFiltersSchema
    ) -> Query[TreasuryEntry]:
        if filters.treasury_id is not None:
            query = query.filter(TreasuryEntry.treasury_id == filters.treasury_id)
        if filters.direction is not None:
            query = query.filter(TreasuryEntry.direction == filters.direction)
        if filters.entry_type is not None:
            query = query.filter(TreasuryEntry.entry_type == filters.entry_type)
        if filters.reference_type is not None:
            query = query.filter(TreasuryEntry.reference_type == filters.reference_type)
        if filters.reference_id is not None:
            query = query.filter(TreasuryEntry.reference_id == filters.reference_id)
        if filters.from_date is not None:
            query = query.filter(TreasuryEntry.entry_date >= filters.from_date)
        if filters.to_date is not None:
            query = query.filter(TreasuryEntry.entry_date <= filters.to_date)
        if filters.comment is not None:
            query = query.filter(TreasuryEntry.comment.ilike(f"%{filters.comment}%"))
        if filters.search:
            query = query.filter(TreasuryEntry.comment.ilike(f"%{filters.search}%"))
        if filters.created_after is not None:
            query = query.filter(TreasuryEntry.created_at >= filters.created_after)
        if filters.created_before is not None:
            query = query.filter(TreasuryEntry.created_at <= filters.created_before)
        return query

    def list_entries(
        self, filters: TreasuryEntryFiltersSchema | None = None, skip=0, limit=100
    ) -> EntriesPage:
        query = self.db.query(TreasuryEntry)
        if filters:
            query = self._apply_filters(query, filters)

        totals = {EntryDirection.IN: ZERO, EntryDirection.OUT: ZERO}
        for direction, total in (
            query.with_entities(TreasuryEntry.direction, func.sum(TreasuryEntry.amount))
            .group_by(TreasuryEntry.direction)
            .all()
        ):
            totals[direction] = to_money(total)

        total = query.count()
        items = (
            query.order_by(TreasuryEntry.entry_date.desc(), TreasuryEntry.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return EntriesPage(
            items=items,
            total=total,
            skip=skip,
            limit=limit,
            summary={
                "total_in": totals[EntryDirection.IN],
                "total_out": totals[EntryDirection.OUT],
                "net": totals[EntryDirection.IN] - totals[EntryDirection.OUT],
            },
        )

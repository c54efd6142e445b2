"""Treasury service"""

import datetime
import logging
from decimal import Decimal

from fastapi import Depends
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.errors.treasury import LastActiveTreasury
from retail_ledger.models.customer_payment import CustomerPayment
from retail_ledger.models.sale import Sale
from retail_ledger.models.sales_return import SalesReturn
from retail_ledger.models.treasury import Treasury
from retail_ledger.models.treasury_entry import (
    EntryDirection,
    EntryType,
    ReferenceType,
    TreasuryEntry,
)
from retail_ledger.money import ZERO, to_money
from retail_ledger.schemas.base import PaginationSchema  # for type hints
from retail_ledger.schemas.treasury import (
    TreasuryCreateSchema,
    TreasuryFiltersSchema,
    TreasuryUpdateSchema,
)
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.services.audit import AuditService
from retail_ledger.services.base import BaseService
from retail_ledger.services.default_treasury import DefaultTreasuryService
from retail_ledger.services.ledger import LedgerService
from retail_ledger.services.locks import lock_treasuries
from retail_ledger.services.treasury_code import (
    normalize_treasury_code,
    unique_treasury_code,
)
from retail_ledger.uow import get_uow
from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)


class TreasuryService(BaseService[Treasury]):
    model = Treasury

    def __init__(
        self,
        db: Session = Depends(get_uow),
        default_treasury_service: DefaultTreasuryService = Depends(),
        ledger_service: LedgerService = Depends(),
        audit_service: AuditService = Depends(),
    ):
        self.db = db
        self._default_treasury_service = default_treasury_service
        self._ledger_service = ledger_service
        self._audit_service = audit_service

    def _name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        query = self.db.query(Treasury.id).filter(Treasury.name == name)
        if exclude_id is not None:
            query = query.filter(Treasury.id != exclude_id)
        return query.first() is not None

    def _other_active_count(self, treasury_id: int) -> int:
        return (
            self.db.query(Treasury)
            .filter(
                Treasury.id != treasury_id,
                Treasury.is_active.is_(True),
                Treasury.is_deleted.is_(False),
            )
            .count()
        )

    def _move_default_away(self, treasury: Treasury) -> None:
        treasury.is_default = False
        self.db.flush()
        replacement = self._default_treasury_service.get_or_create_default()
        self._default_treasury_service.set_default(replacement.id)

    def create(self, schema: TreasuryCreateSchema) -> Treasury:  # type: ignore[override]
        name = schema.name.strip()
        if self._name_taken(name):
            raise ConstraintViolation(f"Treasury name {name!r} is already used")
        opening_balance = to_money(schema.opening_balance)
        has_default = (
            self.db.query(Treasury.id)
            .filter(
                Treasury.is_default.is_(True),
                Treasury.is_active.is_(True),
                Treasury.is_deleted.is_(False),
            )
            .first()
            is not None
        )

        treasury = Treasury(
            name=name,
            code=unique_treasury_code(self.db, schema.code or name),
            opening_balance=opening_balance,
            # the opening entry moves the balance from zero
            current_balance=ZERO,
            is_active=True,
            is_default=False,
            is_deleted=False,
            comment=schema.comment,
        )
        self.db.add(treasury)
        self.db.flush()

        if opening_balance > 0:
            self._ledger_service.post_entry(
                entry_type=EntryType.OPENING_BALANCE,
                amount=opening_balance,
                treasury_id=treasury.id,
                reference=ReferenceSchema(kind=ReferenceType.OPENING, id=treasury.id),
                comment="Opening balance",
            )
        if schema.is_active is False:
            treasury.is_active = False
        elif not has_default:
            self._default_treasury_service.set_default(treasury.id)

        self.db.flush()
        self.db.refresh(treasury)
        logger.info("Created treasury id=%s code=%s", treasury.id, treasury.code)
        self._audit_service.record(
            "TREASURY_CREATED",
            "Treasury",
            treasury.id,
            {"name": treasury.name, "code": treasury.code, "opening_balance": opening_balance},
        )
        return treasury

    def _apply_filters(
        self, query: Query[Treasury], filters: TreasuryFiltersSchema
    ) -> Query[Treasury]:
        if filters.name is not None:
            query = query.filter(Treasury.name.ilike(f"%{filters.name}%"))
        if filters.code is not None:
            query = query.filter(Treasury.code == normalize_treasury_code(filters.code))
        if filters.is_active is not None:
            query = query.filter(Treasury.is_active == filters.is_active)
        if not filters.include_deleted:
            query = query.filter(Treasury.is_deleted.is_(False))
        return query

    def get_all(  # type: ignore[override]
        self, filters: TreasuryFiltersSchema | None = None, skip=0, limit=100
    ) -> PaginationSchema[Treasury]:
        # archived treasuries stay hidden unless asked for
        return super().get_all(filters or TreasuryFiltersSchema(), skip, limit)

    def update(self, obj_id: int, schema: TreasuryUpdateSchema) -> Treasury:  # type: ignore[override]
        treasury = self.get(obj_id)
        overrides: dict = {}
        if schema.name is not None:
            name = schema.name.strip()
            if self._name_taken(name, exclude_id=obj_id):
                raise ConstraintViolation(f"Treasury name {name!r} is already used")
            overrides["name"] = name
        if schema.code is not None:
            overrides["code"] = unique_treasury_code(
                self.db, schema.code, exclude_id=obj_id
            )
        if schema.is_active is False and treasury.is_active:
            if self._other_active_count(obj_id) == 0:
                raise LastActiveTreasury(f"Treasury id={obj_id}")
        treasury = super().update(obj_id, schema, overrides)
        if not treasury.is_active and treasury.is_default:
            self._move_default_away(treasury)
        return treasury

    def _is_linked(self, treasury_id: int) -> bool:
        for model in (TreasuryEntry, Sale, CustomerPayment, SalesReturn):
            linked = (
                self.db.query(model.id)
                .filter(model.treasury_id == treasury_id)
                .first()
            )
            if linked is not None:
                return True
        return False

    def delete(self, obj_id: int) -> int:  # type: ignore[override]
        """
        Delete a treasury. A treasury with history is archived instead so
        that its entries keep pointing at a real row.
        """
        treasury = self.get(obj_id)
        if not treasury.is_deleted and self._other_active_count(obj_id) == 0:
            raise LastActiveTreasury(f"Treasury id={obj_id}")
        was_default = treasury.is_default

        if self._is_linked(obj_id):
            now = datetime.datetime.now()
            treasury.is_deleted = True
            treasury.is_active = False
            treasury.is_default = False
            treasury.deleted_at = now
            treasury.modified_at = now
            if not treasury.name.endswith(f"[archived #{obj_id}]"):
                treasury.name = f"{treasury.name} [archived #{obj_id}]"
            if not treasury.code.endswith(f"_DEL_{obj_id}"):
                treasury.code = f"{treasury.code}_DEL_{obj_id}"
            self.db.flush()
            logger.info("Archived treasury id=%s", obj_id)
            action = "TREASURY_ARCHIVED"
        else:
            self.db.delete(treasury)
            self.db.flush()
            logger.info("Deleted treasury id=%s", obj_id)
            action = "TREASURY_DELETED"

        if was_default:
            replacement = self._default_treasury_service.get_or_create_default()
            self._default_treasury_service.set_default(replacement.id)
        self._audit_service.record(action, "Treasury", obj_id)
        return obj_id

    def set_default(self, obj_id: int) -> Treasury:
        treasury = self._default_treasury_service.set_default(obj_id)
        self._audit_service.record("TREASURY_DEFAULT_SET", "Treasury", obj_id)
        return treasury

    def get_default(self) -> Treasury:
        return self._default_treasury_service.get_or_create_default()

    def computed_balance(self, treasury: Treasury) -> Decimal:
        """Opening balance plus the signed sum of every non-opening entry."""
        signed = case(
            (TreasuryEntry.direction == EntryDirection.IN, TreasuryEntry.amount),
            else_=-TreasuryEntry.amount,
        )
        total = (
            self.db.query(func.coalesce(func.sum(signed), 0))
            .filter(
                TreasuryEntry.treasury_id == treasury.id,
                TreasuryEntry.entry_type != EntryType.OPENING_BALANCE,
            )
            .scalar()
        )
        return to_money(treasury.opening_balance) + to_money(total)

    def reconcile(self, obj_id: int, fix: bool = False) -> dict:
        """Compare the cached balance with the entry history, optionally fixing drift."""
        treasury = self.get(obj_id)
        if fix:
            treasury = lock_treasuries(self.db, [obj_id])[obj_id]
        cached = to_money(treasury.current_balance)
        computed = self.computed_balance(treasury)
        drift = cached - computed
        fixed = False
        if drift != 0:
            logger.warning(
                "Treasury id=%s drifted: cached=%s computed=%s", obj_id, cached, computed
            )
            if fix:
                treasury.current_balance = computed
                treasury.modified_at = datetime.datetime.now()
                self.db.flush()
                fixed = True
                self._audit_service.record(
                    "TREASURY_RECONCILED",
                    "Treasury",
                    obj_id,
                    {"cached": cached, "computed": computed},
                )
        return {
            "treasury_id": obj_id,
            "cached": cached,
            "computed": computed,
            "drift": drift,
            "fixed": fixed,
        }

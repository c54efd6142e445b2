"""Default treasury resolution"""

import datetime
import logging
from decimal import Decimal

from fastapi import Depends
from retail_ledger.config import Config, get_config
from retail_ledger.errors.treasury import TreasuryInactive, TreasuryNotFound
from retail_ledger.models.treasury import Treasury
from retail_ledger.services.treasury_code import (
    unique_treasury_code,
    unique_treasury_name,
)
from retail_ledger.uow import get_uow
from sqlalchemy import update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class DefaultTreasuryService:
    def __init__(
        self,
        db: Session = Depends(get_uow),
        config: Config = Depends(get_config),
    ):
        self.db = db
        self.config = config

    def _usable(self):
        return self.db.query(Treasury).filter(
            Treasury.is_active.is_(True), Treasury.is_deleted.is_(False)
        )

    def resolve_treasury_id(self, requested: int | None = None) -> int:
        """
        Turn an optional treasury id into a concrete, usable one.

        An omitted id falls back to the default treasury. An explicit id must
        name an existing, active, non-deleted treasury.
        """
        if requested is None:
            return self.get_or_create_default().id
        treasury = self.db.get(Treasury, requested)
        if treasury is None:
            raise TreasuryNotFound(f"Treasury id={requested}")
        if not treasury.is_active or treasury.is_deleted:
            raise TreasuryInactive(f"Treasury id={requested}")
        return treasury.id

    def get_or_create_default(self) -> Treasury:
        """
        Pick the fallback treasury: explicit default, then the well-known
        code, then any active treasury. Create one when nothing is usable.
        """
        treasury = self._usable().filter(Treasury.is_default.is_(True)).first()
        if treasury is not None:
            return treasury
        treasury = (
            self._usable()
            .filter(Treasury.code == self.config.default_treasury_code)
            .first()
        )
        if treasury is not None:
            return treasury
        treasury = self._usable().order_by(Treasury.id).first()
        if treasury is not None:
            return treasury
        return self._create_default()

    def _create_default(self) -> Treasury:
        # only one default may exist; stale flags can linger on inactive rows
        self.db.execute(
            update(Treasury)
            .where(Treasury.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        treasury = Treasury(
            name=unique_treasury_name(self.db, self.config.default_treasury_name),
            code=unique_treasury_code(self.db, self.config.default_treasury_code),
            opening_balance=Decimal("0.00"),
            current_balance=Decimal("0.00"),
            is_active=True,
            is_default=True,
            is_deleted=False,
        )
        self.db.add(treasury)
        self.db.flush()
        logger.info("Created default treasury id=%s code=%s", treasury.id, treasury.code)
        return treasury

    def set_default(self, treasury_id: int) -> Treasury:
        """Make `treasury_id` the only default treasury."""
        treasury = self.db.get(Treasury, treasury_id)
        if treasury is None:
            raise TreasuryNotFound(f"Treasury id={treasury_id}")
        if not treasury.is_active or treasury.is_deleted:
            raise TreasuryInactive(f"Treasury id={treasury_id}")
        self.db.flush()
        with self.db.begin_nested():
            self.db.execute(
                update(Treasury)
                .where(Treasury.id != treasury_id, Treasury.is_default.is_(True))
                .values(is_default=False, modified_at=datetime.datetime.now())
                .execution_options(synchronize_session="fetch")
            )
            treasury.is_default = True
            treasury.modified_at = datetime.datetime.now()
        logger.info("Treasury id=%s is now the default", treasury_id)
        return treasury

"""Row and advisory locks used by ledger-affecting operations.

All locks are transaction scoped and released on commit or rollback.
"""

import hashlib
import logging
from typing import Iterable

from retail_ledger.models.treasury import Treasury
from sqlalchemy import select, text
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def advisory_lock_id(key: str) -> int:
    """Deterministic signed 64-bit lock id for an arbitrary string key."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def acquire_advisory_lock(db: Session, key: str) -> None:
    """Serialize callers sharing `key` until the end of the transaction.

    SQLite has no advisory locks, but it already serializes writers.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    lock_id = advisory_lock_id(key)
    logger.debug("Acquiring advisory lock %s for key %r", lock_id, key)
    db.execute(text("SELECT pg_advisory_xact_lock(:lock_id)"), {"lock_id": lock_id})


def lock_treasuries(db: Session, treasury_ids: Iterable[int]) -> dict[int, Treasury]:
    """SELECT ... FOR UPDATE the given treasuries, always in ascending id order.

    Locking in a stable order keeps concurrent transfers in opposite
    directions from deadlocking. Rows are re-read so balances are fresh.
    """
    ids = sorted(set(treasury_ids))
    if not ids:
        return {}
    # pending balance changes must reach the database before the re-read
    db.flush()
    rows = db.execute(
        select(Treasury)
        .where(Treasury.id.in_(ids))
        .order_by(Treasury.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars()
    return {treasury.id: treasury for treasury in rows}

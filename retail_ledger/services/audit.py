"""Best-effort audit trail"""

import logging

from fastapi import Depends
from pydantic_core import to_jsonable_python
from retail_ledger.models.audit_log import AuditLog
from retail_ledger.uow import get_uow
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, db: Session = Depends(get_uow)):
        self.db = db

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        payload: dict | None = None,
    ) -> None:
        """
        Persist an audit record inside its own savepoint.

        A failure to audit never aborts the business transaction: the
        savepoint is rolled back and the problem is logged.
        """
        # surface business write errors here, not inside the audit savepoint
        self.db.flush()
        try:
            with self.db.begin_nested():
                self.db.add(
                    AuditLog(
                        action=action,
                        entity_type=entity_type,
                        entity_id=entity_id,
                        payload=to_jsonable_python(payload) if payload else None,
                    )
                )
        except SQLAlchemyError:
            logger.warning(
                "Audit record %s for %s id=%s was not written",
                action,
                entity_type,
                entity_id,
                exc_info=True,
            )

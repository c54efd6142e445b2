from typing import Generator

from fastapi import Depends
from retail_ledger.db import get_db
from sqlalchemy.orm import Session


class UnitOfWork:
    """One business action, one transaction: commit on success, rollback on error."""

    def __init__(self, db: Session):
        self.db = db

    def __getattr__(self, attr):
        # services treat the unit of work as a plain Session
        return getattr(self.db, attr)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type:
                self.db.rollback()
            else:
                self.db.commit()
        finally:
            self.db.close()


def get_uow(db: Session = Depends(get_db)) -> Generator[UnitOfWork, None, None]:
    """Request-scoped unit of work shared by every service of one request."""
    with UnitOfWork(db) as uow:
        yield uow

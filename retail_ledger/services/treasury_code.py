"""Treasury code and name normalization"""

import re

from retail_ledger.models.treasury import Treasury
from sqlalchemy.orm import Session

_SEPARATORS = re.compile(r"[\s\-]+")
_NOT_TOKEN = re.compile(r"[^A-Z0-9_]")


def normalize_treasury_code(value: str | None) -> str:
    """'main shop-2' -> 'MAIN_SHOP_2'. Characters outside [A-Z0-9_] are dropped."""
    token = _SEPARATORS.sub("_", (value or "").strip().upper())
    token = _NOT_TOKEN.sub("", token)
    return token.strip("_")


def unique_treasury_code(
    db: Session, value: str | None, exclude_id: int | None = None
) -> str:
    base = normalize_treasury_code(value)
    if not base:
        base = f"TREASURY_{db.query(Treasury).count() + 1}"
    candidate = base
    suffix = 2
    while _code_taken(db, candidate, exclude_id):
        candidate = f"{base}_{suffix}"
        suffix += 1
    return candidate


def unique_treasury_name(
    db: Session, value: str, exclude_id: int | None = None
) -> str:
    base = value.strip()
    candidate = base
    suffix = 2
    while _name_taken(db, candidate, exclude_id):
        candidate = f"{base} ({suffix})"
        suffix += 1
    return candidate


def _code_taken(db: Session, code: str, exclude_id: int | None) -> bool:
    query = db.query(Treasury.id).filter(Treasury.code == code)
    if exclude_id is not None:
        query = query.filter(Treasury.id != exclude_id)
    return query.first() is not None


def _name_taken(db: Session, name: str, exclude_id: int | None) -> bool:
    query = db.query(Treasury.id).filter(Treasury.name == name)
    if exclude_id is not None:
        query = query.filter(Treasury.id != exclude_id)
    return query.first() is not None

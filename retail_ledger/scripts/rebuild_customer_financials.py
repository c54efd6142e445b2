"""Recompute cached customer balances and activity dates from history.

Usage examples:
    python -m retail_ledger.scripts.rebuild_customer_financials
    python -m retail_ledger.scripts.rebuild_customer_financials --customer-id 42
    python -m retail_ledger.scripts.rebuild_customer_financials --batch-size 500 --start-after-id 1200

Every page of customers is committed on its own, so an interrupted run can be
resumed with --start-after-id set to the last id it logged.
"""

from __future__ import annotations

import argparse
import json
import logging

from retail_ledger.config import get_config
from retail_ledger.db import DatabaseConnection
from retail_ledger.dependencies.services import ServiceContainer
from retail_ledger.log import configure_logging
from retail_ledger.uow import UnitOfWork

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild customer financials")
    parser.add_argument(
        "--customer-id",
        type=int,
        action="append",
        help="Rebuild only this customer (may be repeated)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        required=False,
        help="Customers per committed page (default from config)",
    )
    parser.add_argument(
        "--start-after-id",
        type=int,
        default=0,
        help="Resume after this customer id",
    )
    return parser.parse_args(argv)


def run_rebuild(
    customer_ids: list[int] | None = None,
    batch_size: int | None = None,
    start_after_id: int = 0,
) -> dict:
    # Create config explicitly for CLI usage (bypass FastAPI Depends)
    config = get_config()
    db_conn = DatabaseConnection(config)
    session = db_conn.get_session()
    with UnitOfWork(session) as uow:
        service = ServiceContainer(uow, config).customer_financials_service
        if customer_ids:
            return service.rebuild(customer_ids)

        def commit_page(last_id: int) -> None:
            uow.commit()
            logger.info("Committed page ending at customer id=%s", last_id)

        return service.rebuild_all(batch_size, start_after_id, on_batch=commit_page)


def main(argv: list[str] | None = None) -> None:
    configure_logging()
    args = parse_args(argv)
    if args.batch_size is not None and args.batch_size <= 0:
        raise SystemExit("--batch-size must be positive")
    result = run_rebuild(args.customer_id, args.batch_size, args.start_after_id)
    logger.info("Rebuild finished: %s", json.dumps(result))


if __name__ == "__main__":
    main()

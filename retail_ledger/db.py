"""Database connection and initialization"""

import logging
import os
from typing import Any, Generator, List, Type

from fastapi import Depends
from retail_ledger.bootstrap import BOOTSTRAP
from retail_ledger.config import Config, get_config
from retail_ledger.models import (  # noqa: F401  register every table on the metadata
    audit_log,
    customer,
    customer_payment,
    customer_transaction,
    payment_allocation,
    payment_method,
    sale,
    sales_return,
    treasury,
    treasury_entry,
)
from retail_ledger.models.base import BaseModel
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def _configure_sqlite(engine: Engine) -> None:
    """Make pysqlite honour SAVEPOINT and foreign keys.

    pysqlite emits its own BEGIN lazily, which breaks nested transactions;
    hand BEGIN over to SQLAlchemy instead.
    """

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


class DatabaseConnection:
    engine: Engine
    session_local: sessionmaker[Session]
    # Class-level flag ensures bootstrapping runs only once per process.
    _bootstrapped: bool = False

    def __init__(self, config: Config = Depends(get_config)) -> None:
        self.config = config
        if config.database_url.startswith("sqlite"):
            # Ensure the database folder exists.
            os.makedirs(config.database_path.parent, exist_ok=True)
            self.engine = create_engine(
                config.database_url, connect_args={"check_same_thread": False}
            )
            _configure_sqlite(self.engine)
        else:
            self.engine = create_engine(config.database_url)
        self.session_local = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )
        # Seed bootstrap data only once per process.
        if not self.__class__._bootstrapped:
            self.create_tables()
            self.seed_bootstrap_data()
            self.__class__._bootstrapped = True

    def create_tables(self) -> None:
        """Create all database tables defined in models."""
        logger.info("Creating database tables...")
        BaseModel.metadata.create_all(bind=self.engine)
        logger.info("Database tables created.")

    def drop_tables(self) -> None:
        """Drop all database tables."""
        logger.info("Dropping database tables...")
        BaseModel.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped.")

    def get_session(self) -> Session:
        """Return a new SQLAlchemy session."""
        return self.session_local()

    def seed_bootstrap_data(self) -> None:
        """
        Seed payment methods, bump the autoincrement sequence past the seeded
        ids and make sure a default treasury exists.
        """
        # local import: services depend on this module through the unit of work
        from retail_ledger.services.default_treasury import DefaultTreasuryService

        with self.get_session() as session:
            try:
                for model, seeds in BOOTSTRAP.items():
                    self._seed_model(
                        session=session,
                        model=model,
                        seeds=seeds,
                        sequence_start=100,
                    )
                DefaultTreasuryService(
                    db=session, config=self.config
                ).get_or_create_default()
                session.commit()
                logger.info("Bootstrap data seeding completed successfully.")
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception("Error occurred during bootstrap data seeding.")
                raise exc

    def _seed_model(
        self,
        session: Session,
        model: Type[BaseModel],
        seeds: List[BaseModel],
        sequence_start: int = 100,
    ) -> None:
        """
        Merge pre-instantiated seed objects, then move the PostgreSQL id
        sequence to `sequence_start` so user-created rows never collide with
        seeded ids. SQLite picks max(id) + 1 on its own.
        """
        table_name = model.__tablename__
        logger.info("Seeding data for table '%s'", table_name)

        for seed in seeds:
            logger.debug("Merging seed with id %s for table '%s'", seed.id, table_name)
            session.merge(seed)
        session.flush()
        logger.info("Merged %d seed(s) for table '%s'", len(seeds), table_name)

        dialect = session.get_bind().dialect.name.lower()
        if dialect == "postgresql":
            # For PostgreSQL, assume the sequence name is '{table_name}_id_seq'
            sequence_name = f"{table_name}_id_seq"
            result = session.execute(
                text(f"SELECT last_value FROM {sequence_name}")
            ).fetchone()
            current_seq = result[0] if result is not None else 0
            if current_seq < (sequence_start - 1):
                logger.info(
                    "Updating sequence for table '%s' (sequence: '%s') to %d",
                    table_name,
                    sequence_name,
                    sequence_start,
                )
                session.execute(
                    text(
                        f"ALTER SEQUENCE {sequence_name} RESTART WITH {sequence_start}"
                    )
                )
                session.flush()
        elif dialect != "sqlite":
            logger.warning(
                "Dialect '%s' not explicitly handled for sequence update on table '%s'",
                dialect,
                table_name,
            )


def get_db(db_conn: DatabaseConnection = Depends()) -> Generator[Session, Any, None]:
    """
    Dependency for providing a SQLAlchemy session to services and tests.

    Yields:
        SQLAlchemy Session.
    """
    session = db_conn.get_session()
    try:
        yield session
    finally:
        session.close()

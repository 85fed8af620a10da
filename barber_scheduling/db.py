# barber_scheduling/db.py

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlmodel import Session, SQLModel, create_engine

from .config import config
from .exceptions import InfrastructureException, TransactionContentionException

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def build_engine(url: str = None, **kwargs: Any) -> Engine:
    url = url or config.database_url
    connect_args: Dict[str, Any] = kwargs.pop("connect_args", {})
    if url.startswith("sqlite"):
        # required for SQLite + FastAPI; busy timeout bounds the lock wait
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", config.tx_max_wait_seconds)

    new_engine = create_engine(
        url,
        echo=config.sql_echo,
        connect_args=connect_args,
        **kwargs,
    )
    if new_engine.dialect.name == "sqlite":
        _install_sqlite_transactions(new_engine)
    return new_engine


def _install_sqlite_transactions(target: Engine) -> None:
    # pysqlite defers BEGIN until the first write; take over so a unit of work
    # can grab the write lock up front with BEGIN IMMEDIATE
    @event.listens_for(target, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql(conn.get_execution_options().get("sqlite_begin", "BEGIN"))


engine = build_engine()


def create_db_and_tables(bind: Engine = None) -> None:
    SQLModel.metadata.create_all(bind or engine)


# Dependency: one session per request
def get_session() -> Iterator[Session]:
    with Session(engine) as session:
        yield session


def _unit_of_work_options(session: Session) -> Dict[str, Any]:
    if session.get_bind().dialect.name == "sqlite":
        # SQLite transactions are already serializable; IMMEDIATE takes the write lock
        return {"sqlite_begin": "BEGIN IMMEDIATE"}
    return {"isolation_level": "SERIALIZABLE"}


def _apply_timeouts(session: Session) -> None:
    if session.get_bind().dialect.name != "postgresql":
        return
    lock_ms = int(config.tx_max_wait_seconds * 1000)
    statement_ms = int(config.tx_timeout_seconds * 1000)
    session.execute(text(f"SET LOCAL lock_timeout = {lock_ms}"))
    session.execute(text(f"SET LOCAL statement_timeout = {statement_ms}"))


def _is_contention(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "could not serialize" in message


def translate_store_error(exc: DBAPIError) -> InfrastructureException:
    """Map a driver error to the domain exception the API reports for it."""
    if _is_contention(exc):
        logger.warning("Store contention: %s", exc.orig)
        return TransactionContentionException(details={"reason": str(exc.orig)})
    logger.error("Store failure: %s", exc.orig, exc_info=exc)
    return InfrastructureException(details={"reason": str(exc.orig)})


@contextmanager
def serializable_transaction(session: Session) -> Iterator[Session]:
    """Run a unit of work at the strictest isolation level the store offers.

    Commits on clean exit and rolls back on any exception. Store failures go
    through translate_store_error: contention (serialization failure, lock
    wait or timeout) becomes TransactionContentionException, anything else
    InfrastructureException. Nothing is retried.
    """
    if session.in_transaction():
        # advisory reads autobegin a transaction; close it so this one starts clean
        session.commit()
    try:
        with session.begin():
            session.connection(execution_options=_unit_of_work_options(session))
            _apply_timeouts(session)
            yield session
    except DBAPIError as exc:
        raise translate_store_error(exc) from exc

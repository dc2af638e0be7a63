from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from common_core.config import settings


class Base(DeclarativeBase):
    pass


def make_engine(db_url: str):
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, pool_pre_ping=True, future=True)

    engine = create_engine(
        db_url, future=True, connect_args={"check_same_thread": False}
    )

    # pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT;
    # take over transaction control so begin_nested() works in tests.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def make_session(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


dispatch_engine = make_engine(settings.dispatch_db_url)

DispatchSessionLocal = make_session(dispatch_engine)

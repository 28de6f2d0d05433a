from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from stockledger.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def enable_sqlite_savepoints(target_engine) -> None:
    """Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT nests correctly.

    The audit insert runs in a savepoint of the business transaction; pysqlite's
    implicit transaction handling would otherwise release it as the outer one.
    """
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(target_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


enable_sqlite_savepoints(engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    # Import all models so Base.metadata knows about them
    import stockledger.models.audit_log  # noqa: F401
    import stockledger.models.location  # noqa: F401
    import stockledger.models.product  # noqa: F401
    import stockledger.models.supplier  # noqa: F401
    import stockledger.models.user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from stockledger.config import settings


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.LOCK_TIMEOUT_SECONDS

    eng = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        # SQLite ignores FOREIGN KEY clauses unless asked per connection
        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None):
    # Import all models so Base.metadata knows about them
    import stockledger.models.ledger_entry  # noqa: F401
    import stockledger.models.price_change  # noqa: F401
    import stockledger.models.product  # noqa: F401
    import stockledger.models.supplier  # noqa: F401
    import stockledger.models.user  # noqa: F401

    # Session hooks: immutable ledger rows and the price audit trail
    import stockledger.services.audit_service  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

"""Database configuration and session management."""
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from mecasync.config import settings
from mecasync.exceptions import StorageError

# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}
)

# Create SessionLocal class for database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create Base class for models
Base = declarative_base()


def get_db():
    """
    Dependency for getting database sessions.

    Yields:
        Database session that will be closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def storage_errors(db: Session, action: str):
    """
    Roll back and re-raise SQLAlchemy failures as StorageError.

    Args:
        db: Session to roll back on failure
        action: Short description used in the error message
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"✗ Storage failure while trying to {action}: {e}")
        raise StorageError(f"Failed to {action}") from e


def build_upsert(db: Session, model, values: dict, conflict_columns: list, set_factory):
    """
    Build a single-statement INSERT ... ON CONFLICT/DUPLICATE KEY UPDATE.

    Args:
        db: Session whose bind decides the dialect
        model: Declarative model to insert into
        values: Column values for the new row
        conflict_columns: Columns of the unique key the row may collide on
        set_factory: Callable receiving the "incoming row" namespace
            (excluded/inserted) and returning the columns to overwrite

    Returns:
        Executable insert statement
    """
    dialect = db.get_bind().dialect.name

    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(model).values(**values)
        return stmt.on_duplicate_key_update(**set_factory(stmt.inserted))
    else:
        raise StorageError(f"Upsert is not supported on the {dialect} dialect")

    stmt = insert(model).values(**values)
    return stmt.on_conflict_do_update(index_elements=conflict_columns, set_=set_factory(stmt.excluded))


def init_db(bind=None):
    """Initialize database by creating all tables."""
    # Import models so SQLAlchemy knows about them
    import mecasync.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

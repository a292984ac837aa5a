import logging
from typing import Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import SQLALCHEMY_DATABASE_URI, REVENUE_SHARE_MAX_RETRIES
from app.core.exceptions import ConcurrentWriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Determine if we are using SQLite
is_sqlite = SQLALCHEMY_DATABASE_URI.startswith("sqlite")

connect_args = {}
if is_sqlite:
    connect_args = {"check_same_thread": False}

engine = create_engine(SQLALCHEMY_DATABASE_URI, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def run_in_transaction(db: Session, operation: Callable[[], T], *, retries: int = REVENUE_SHARE_MAX_RETRIES) -> T:
    """
    Run `operation` and commit its work as a single unit.

    Any exception rolls the whole unit back. OperationalError (serialization
    failure, lock timeout, locked SQLite file) is treated as a lost race and the
    operation is replayed from scratch; after `retries` replays the caller gets
    ConcurrentWriteError, which is safe to retry.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = operation()
            db.commit()
            return result
        except OperationalError as exc:
            db.rollback()
            if attempt > retries:
                logger.error(f"Giving up after {attempt} attempts: {exc}")
                raise ConcurrentWriteError(
                    f"Write conflict persisted after {attempt} attempts; retry the operation."
                ) from exc
            logger.warning(f"Write conflict on attempt {attempt}, retrying: {exc}")
        except Exception:
            db.rollback()
            raise

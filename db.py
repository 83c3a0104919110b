import os
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from dotenv import load_dotenv

from errors import PersistenceError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is not set in .env file")

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across the threadpool FastAPI runs sync routes in
    connect_args["check_same_thread"] = False

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    # Connection pool settings
    pool_pre_ping=True,        # Verify connections before using
    pool_recycle=1800,          # Recycle connections after 30 minutes
    echo=False,                 # Don't log SQL queries (set True for debugging)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    """
    Dependency to get a SQLAlchemy session.
    Used with FastAPI Depends() for automatic session management.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db):
    """
    Commit everything written inside the block, or nothing.

    Database failures are rolled back and re-raised as PersistenceError;
    any other exception is rolled back and propagated unchanged.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back: {str(e)}")
        raise PersistenceError(str(e)) from e
    except Exception:
        db.rollback()
        raise

from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine

from config import DATABASE_URL
from utils.logger import get_logger

logger = get_logger(__name__)


def build_engine(url: str) -> Engine:
    # check_same_thread=False is needed only for SQLite
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(DATABASE_URL)


def configure_engine(url: str) -> Engine:
    """Point the module at another database (used by scripts and tests)."""
    global engine
    engine.dispose()
    engine = build_engine(url)
    logger.info(f"Database engine bound to {engine.url.render_as_string(hide_password=True)}")
    return engine


def create_db_and_tables():
    # Import so every table is registered on the metadata
    from database import models  # noqa: F401
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session

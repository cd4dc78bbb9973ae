"""
Database connection and setup
SQLAlchemy engine and session factories for the row store.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from city_explorer.models import Base

logger = logging.getLogger("cache.db")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.
    SQLite connections are shared across worker threads.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Needed for SQLite
    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,  # Set to True to see SQL queries
        pool_pre_ping=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to an engine"""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {engine.url!r}")

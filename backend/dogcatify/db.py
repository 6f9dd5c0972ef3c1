"""
Database setup for the DogCatify lifecycle service.
Uses SQLAlchemy with SQLite for partners, pets, bookings, orders, health records and alerts.
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from dogcatify import config

# SQLITE_DB_PATH comes through config so a value set only in .env is honored
DB_PATH = config.SQLITE_DB_PATH
DATABASE_URL = f"sqlite:///{DB_PATH}"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    echo=config.SQL_ECHO,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db():
    """Create all tables. Call at app startup."""
    from dogcatify import models  # noqa: F401
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=engine)

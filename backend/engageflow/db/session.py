from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from engageflow.core.config import settings


def build_engine(url: str):
    """Create an engine; SQLite needs cross-thread access for the job runner"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)

# expire_on_commit=False: stores hand detached rows back to callers
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()

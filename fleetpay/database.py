from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from fleetpay.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=({"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}),
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db(bind=None) -> None:
    """Create all tables."""
    # Import models so they register on the metadata
    from fleetpay import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

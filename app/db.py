# app/db.py
from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import settings

Base = declarative_base()


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI serves sync routes from a threadpool
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args, future=True)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create tables and make sure the order-number counter row exists."""
    from .models import Order, Sequence

    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    with Session(bind=bind) as db:
        if db.get(Sequence, Sequence.ORDER_NO) is None:
            # continue numbering from whatever orders already exist
            existing = db.execute(select(func.count(Order.id))).scalar_one()
            db.add(Sequence(name=Sequence.ORDER_NO, value=existing))
            db.commit()

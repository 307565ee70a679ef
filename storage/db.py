# storage/db.py
from sqlmodel import SQLModel, create_engine, Session

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models.queue_entry  # noqa: F401
from storage import migrations


_engine = None


def get_engine():
    global _engine
    if _engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(f"sqlite:///{DB_PATH.as_posix()}", echo=False)
    return _engine


def init_db(engine=None):
    actual_engine = engine or get_engine()
    SQLModel.metadata.create_all(actual_engine)
    migrations.run_all(actual_engine)
    return actual_engine


def get_session() -> Session:
    return Session(get_engine())

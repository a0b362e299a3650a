from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from .config import settings

# Base dir = repository root (one level above the package)
BASE_DIR = Path(__file__).resolve().parent.parent

DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(parents=True, exist_ok=True)


def resolve_database_url(url=None) -> str:
    """Default to a sqlite file under ./data; make relative sqlite paths absolute.

    Relative paths are anchored at the repository root so the database is the
    same file whatever the working directory.
    """
    database_url = url or f"sqlite:///{(DATA_DIR / 'app.db').as_posix()}"
    if database_url.startswith("sqlite:///"):
        p = Path(database_url.replace("sqlite:///", "", 1))
        if not p.is_absolute():
            p = (BASE_DIR / p).resolve()
        p.parent.mkdir(parents=True, exist_ok=True)
        database_url = f"sqlite:///{p.as_posix()}"
    return database_url


DATABASE_URL = resolve_database_url(settings.DATABASE_URL)

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # uvicorn serves sync routes from a threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    if not DATABASE_URL.startswith("sqlite"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def init_db():
    # register tables on the metadata before create_all
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)

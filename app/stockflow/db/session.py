import time
from contextvars import ContextVar

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.stockflow.core.config import settings

# Holds a one-element accumulator so sync endpoints running in the threadpool
# add to the same total the middleware reads.
_db_time_ms: ContextVar[list | None] = ContextVar("db_time_ms", default=None)


def start_db_timer() -> object:
    return _db_time_ms.set([0.0])


def stop_db_timer(token: object) -> None:
    _db_time_ms.reset(token)


def get_db_time_ms() -> float | None:
    accumulator = _db_time_ms.get()
    if accumulator is None:
        return None
    return accumulator[0]


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.DB_LOCK_TIMEOUT_SEC}
    if database_url.startswith("postgres"):
        timeout_ms = settings.DB_LOCK_TIMEOUT_SEC * 1000
        return {"options": f"-c lock_timeout={timeout_ms}"}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)


@event.listens_for(engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    if _db_time_ms.get() is None:
        return
    conn.info["query_start_time"] = time.perf_counter()


@event.listens_for(engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    accumulator = _db_time_ms.get()
    if accumulator is None:
        return
    start = conn.info.pop("query_start_time", None)
    if start is None:
        return
    accumulator[0] += (time.perf_counter() - start) * 1000


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

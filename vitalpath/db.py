from __future__ import annotations

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vitalpath.config import settings

# ms a writer waits on a locked sqlite file before failing
SQLITE_BUSY_TIMEOUT_MS = 5000


def database_url() -> str:
    """Async URL of the app database; DATABASE_URL wins over DB_PATH."""
    if settings.database_url:
        return settings.database_url
    p = Path(settings.db_path)
    if str(p.parent) not in ("", "."):
        p.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{settings.db_path}"


def _on_sqlite_connect(dbapi_conn, _record) -> None:
    # the driver's implicit transactions break SAVEPOINT; BEGIN is emitted in _on_sqlite_begin
    dbapi_conn.isolation_level = None
    cur = dbapi_conn.cursor()
    cur.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    # WAL lets analytics reads run alongside a ledger write
    cur.execute("PRAGMA journal_mode=WAL")
    cur.execute("PRAGMA synchronous=NORMAL")
    cur.close()


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def configure_sqlite(eng: AsyncEngine) -> AsyncEngine:
    """Explicit BEGIN plus connection pragmas, so nested transactions work on sqlite."""
    if eng.dialect.name == "sqlite":
        event.listen(eng.sync_engine, "connect", _on_sqlite_connect)
        event.listen(eng.sync_engine, "begin", _on_sqlite_begin)
    return eng


def make_engine(url: str | None = None, **kw) -> AsyncEngine:
    return configure_sqlite(create_async_engine(url or database_url(), future=True, echo=False, **kw))


engine: AsyncEngine = make_engine()
SessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(engine, expire_on_commit=False)

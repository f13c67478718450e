# manages connection to the store, provides helper methods internal to the backend package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator, Optional

import aiosqlite

from utils.config import get_settings
from utils.errors import BackendError
from utils.logger import get_logger

_logger = get_logger(__name__)

# None means "use the configured path"; tests point this at a temp file
DB_PATH: Optional[str] = None
DB_INIT_SCRIPTS = [
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


class ConstraintViolation(BackendError):
    """A unique, foreign-key or check constraint rejected the write."""


def db_path() -> str:
    return DB_PATH or get_settings().db_path


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Ensures the schema exists on first use. Any aiosqlite error raised while
    the connection is open surfaces as BackendError.
    """
    global _initialized
    path = db_path()
    directory = os.path.dirname(path)
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = await aiosqlite.connect(path)
    except (aiosqlite.Error, OSError) as exc:
        raise BackendError(f"cannot open store at {path}: {exc}") from exc
    conn.row_factory = Row
    try:
        await conn.execute("PRAGMA foreign_keys = ON;")
        if not _initialized:
            async with _init_lock:
                if not _initialized:
                    if not await _table_exists(conn, "admin_users"):
                        _logger.info("Initializing database...")
                        await _init_db(conn)
                    _initialized = True
        yield conn
    except aiosqlite.IntegrityError as exc:
        raise ConstraintViolation(str(exc)) from exc
    except aiosqlite.Error as exc:
        raise BackendError(str(exc)) from exc
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Connection whose writes are committed together or not at all."""
    async with connect() as conn:
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()

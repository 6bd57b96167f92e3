# manages connections to the local document store file, internal to db package
import asyncio
import os
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import Optional, Set

import aiosqlite

from wholesale.utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = "data/wholesale.sqlite"
DB_INIT_SCRIPTS = [
    os.path.join(os.path.dirname(__file__), "tables.sql"),
]

# sqlite busy timeout in seconds, the only timeout applied to storage calls
BUSY_TIMEOUT = 5.0

_initialized: Set[str] = set()
_init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {script}...")
        with open(script, "r") as f:
            await conn.executescript(f.read())


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
async def connect(path: Optional[str] = None) -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection in autocommit mode.

    Callers open their own transactions with ``BEGIN IMMEDIATE``.
    Ensures the tables exist on first use of a given file.
    """
    path = path or DB_PATH
    if path != ":memory:":
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)

    conn = await aiosqlite.connect(path, timeout=BUSY_TIMEOUT, isolation_level=None)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if path not in _initialized:
        async with _init_lock:
            if path not in _initialized:
                exists = await _table_exists(conn, "documents")
                if not exists:
                    _logger.info(f"Initializing database at {path}...")
                    await _init_db(conn)
                _initialized.add(path)
    try:
        yield conn
    finally:
        await conn.close()

import time
import uuid
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import aiosqlite

logger = logging.getLogger(__name__)

IntegrityError = aiosqlite.IntegrityError

SCHEMA = [
    """CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'author',
        password_hash TEXT NOT NULL,
        password_salt TEXT NOT NULL,
        bio TEXT DEFAULT '',
        gender TEXT,
        age INTEGER,
        mobile TEXT,
        instagram TEXT,
        twitter TEXT,
        avatar TEXT,
        verified INTEGER NOT NULL DEFAULT 0,
        failed_attempts INTEGER NOT NULL DEFAULT 0,
        last_login INTEGER,
        created_at INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        created_at INTEGER NOT NULL,
        expires_at INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS posts (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        slug TEXT UNIQUE NOT NULL,
        content TEXT NOT NULL,
        excerpt TEXT,
        author_id TEXT NOT NULL REFERENCES users (id),
        status TEXT NOT NULL DEFAULT 'draft',
        featured INTEGER NOT NULL DEFAULT 0,
        view_count INTEGER NOT NULL DEFAULT 0,
        published_at INTEGER,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        name TEXT UNIQUE NOT NULL,
        slug TEXT UNIQUE NOT NULL,
        description TEXT DEFAULT ''
    )""",
    """CREATE TABLE IF NOT EXISTS tags (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT UNIQUE NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS post_categories (
        post_id TEXT NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
        category_id TEXT NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
        PRIMARY KEY (post_id, category_id)
    )""",
    """CREATE TABLE IF NOT EXISTS post_tags (
        post_id TEXT NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
        tag_id TEXT NOT NULL REFERENCES tags (id) ON DELETE CASCADE,
        PRIMARY KEY (post_id, tag_id)
    )""",
    """CREATE TABLE IF NOT EXISTS comments (
        id TEXT PRIMARY KEY,
        post_id TEXT NOT NULL REFERENCES posts (id) ON DELETE CASCADE,
        user_id TEXT REFERENCES users (id) ON DELETE SET NULL,
        author_name TEXT NOT NULL,
        author_email TEXT NOT NULL,
        content TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        parent_id TEXT REFERENCES comments (id) ON DELETE CASCADE,
        created_at INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT
    )""",
    "CREATE INDEX IF NOT EXISTS idx_posts_status ON posts (status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_posts_author ON posts (author_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_post ON comments (post_id, parent_id)",
]


def create_unique_id() -> str:
    """Generate a unique ID"""
    return str(uuid.uuid4())


def create_timestamp() -> int:
    """Current unix time in whole seconds"""
    return int(time.time())


class Executor:
    """Parameterized statement helpers bound to one open connection"""

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    async def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        cursor = await self.conn.execute(query, tuple(params))
        rowcount = cursor.rowcount
        await cursor.close()
        return rowcount

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        async with self.conn.execute(query, tuple(params)) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        async with self.conn.execute(query, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Any:
        async with self.conn.execute(query, tuple(params)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row is not None else None


class Transaction(Executor):
    """Statements issued inside one all-or-nothing unit of work"""


class Database:
    """SQLite store opened per operation, mirroring a request-scoped handle"""

    def __init__(self, path: str):
        self.path = path

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.path) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON")
            yield conn

    async def execute(self, query: str, params: Sequence[Any] = ()) -> int:
        async with self.connect() as conn:
            rowcount = await Executor(conn).execute(query, params)
            await conn.commit()
            return rowcount

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        async with self.connect() as conn:
            return await Executor(conn).fetch_one(query, params)

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        async with self.connect() as conn:
            return await Executor(conn).fetch_all(query, params)

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Any:
        async with self.connect() as conn:
            return await Executor(conn).fetch_value(query, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Run several statements atomically; rolls back on any exception"""
        async with self.connect() as conn:
            await conn.execute("BEGIN")
            try:
                yield Transaction(conn)
            except BaseException:
                await conn.rollback()
                logger.debug("Transaction rolled back")
                raise
            else:
                await conn.commit()

    async def init_schema(self) -> None:
        async with self.connect() as conn:
            for statement in SCHEMA:
                await conn.execute(statement)
            await conn.commit()
        logger.info(f"Database schema ready at {self.path}")

    async def get_setting(self, key: str) -> Optional[str]:
        return await self.fetch_value("SELECT value FROM settings WHERE key = ?", (key,))

    async def set_setting(self, key: str, value: str) -> None:
        await self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

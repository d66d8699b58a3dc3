import os

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
    select,
    text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from rabin_messenger.messenger import Exchange


def get_database_url() -> str:
    """
    Retrieve the database URL from environment.
    Defaults to a local SQLite file; set a postgresql+asyncpg URL in deployments.
    """
    return os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./rabin_messenger.db",
    )


def get_engine() -> AsyncEngine:
    """Return a new async engine using NullPool to avoid pool/loop issues."""
    return create_async_engine(get_database_url(), pool_pre_ping=True, poolclass=NullPool)


async def check_db_connection(engine: AsyncEngine) -> bool:
    """
    Perform a lightweight health probe against the database.
    Raises on failure; returns True on success.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


metadata = MetaData()

# Big integers are stored as decimal strings; they overflow every SQL integer type.
messages_table = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("original", Text, nullable=False),
    Column("encoded", Text, nullable=False),
    Column("ciphertext", Text, nullable=False),
    Column("modulus", Text, nullable=False),
    Column("candidates", Text, nullable=False),
    Column("decrypted_message", Text, nullable=True),
    Column("found", Boolean, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    ),
)

process_log_table = Table(
    "process_log",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("event_type", String(32), nullable=False),
    Column("message", Text, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    ),
)


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if they do not exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def reset_db(engine: AsyncEngine) -> None:
    """Empty all tables between tests to keep state isolated."""
    async with engine.begin() as conn:
        await conn.execute(process_log_table.delete())
        await conn.execute(messages_table.delete())


def _candidates_to_text(candidates) -> str:
    return ",".join(str(c) for c in candidates)


def _message_row_to_dict(row) -> dict:
    return {
        "id": row["id"],
        "original": row["original"],
        "encoded": row["encoded"],
        "ciphertext": row["ciphertext"],
        "modulus": row["modulus"],
        "candidates": row["candidates"].split(","),
        "decrypted_message": row["decrypted_message"],
        "found": bool(row["found"]),
        "created_at": row["created_at"],
    }


async def append_log(engine: AsyncEngine, lines: list[str], *, event_type: str = "process") -> int:
    """Append process-log lines in order. Returns the number of rows written."""
    if not lines:
        return 0
    async with engine.begin() as conn:
        await conn.execute(
            process_log_table.insert(),
            [{"event_type": event_type, "message": line} for line in lines],
        )
    return len(lines)


async def fetch_logs(engine: AsyncEngine, *, limit: int = 200) -> list[dict]:
    """Return the latest log entries, oldest first."""
    async with engine.connect() as conn:
        rows = (
            await conn.execute(
                select(
                    process_log_table.c.id,
                    process_log_table.c.event_type,
                    process_log_table.c.message,
                    process_log_table.c.created_at,
                ).order_by(process_log_table.c.id.desc()).limit(limit)
            )
        ).mappings().all()
    return [dict(r) for r in reversed(rows)]


async def record_exchange(engine: AsyncEngine, exchange: Exchange, *, modulus: int) -> dict:
    """
    Store a messenger exchange and its process-log lines in one transaction.
    Returns the stored message metadata.
    """
    async with engine.begin() as conn:
        result = await conn.execute(
            messages_table.insert()
            .values(
                original=exchange.original,
                encoded=str(exchange.encoded),
                ciphertext=str(exchange.ciphertext),
                modulus=str(modulus),
                candidates=_candidates_to_text(exchange.candidates),
                decrypted_message=exchange.decrypted_message,
                found=exchange.found,
            )
            .returning(messages_table.c.id, messages_table.c.created_at)
        )
        row = result.mappings().first()

        if exchange.log:
            await conn.execute(
                process_log_table.insert(),
                [{"event_type": "message", "message": line} for line in exchange.log],
            )

    return {"message_id": row["id"], "created_at": row["created_at"]}


async def fetch_messages(engine: AsyncEngine, *, limit: int = 100) -> list[dict]:
    """Message history, oldest first."""
    async with engine.connect() as conn:
        rows = (
            await conn.execute(
                select(messages_table).order_by(messages_table.c.id.desc()).limit(limit)
            )
        ).mappings().all()
    return [_message_row_to_dict(r) for r in reversed(rows)]


async def get_message_stats(engine: AsyncEngine) -> dict:
    """Counts of messages, recovered messages and log entries."""
    async with engine.connect() as conn:
        total = (await conn.execute(select(func.count()).select_from(messages_table))).scalar() or 0
        found = (
            await conn.execute(
                select(func.count()).select_from(messages_table).where(messages_table.c.found.is_(True))
            )
        ).scalar() or 0
        log_count = (await conn.execute(select(func.count()).select_from(process_log_table))).scalar() or 0
    return {
        "total_messages": total,
        "recovered_messages": found,
        "total_log_entries": log_count,
    }

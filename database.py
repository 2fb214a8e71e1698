"""
Unsent Pro API — Database helpers
Handles connection, table creation, and the subscription / message log tables.
"""
import json
from datetime import datetime, timezone

import aiosqlite

from config import DATABASE_PATH
from models import MessageLog, Subscription, format_timestamp


class StoreError(Exception):
    pass


# ── Connection ────────────────────────────────────────────────────────────────

async def get_db(path: str = DATABASE_PATH) -> aiosqlite.Connection:
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    # transaction_id is not UNIQUE: renewals insert new rows
    await db.execute("""
        CREATE TABLE IF NOT EXISTS subscription (
            id                       INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_user_id         TEXT    NOT NULL,
            product                  TEXT    NOT NULL,
            price                    REAL    NOT NULL,
            currency                 TEXT    NOT NULL,
            is_active                INTEGER NOT NULL DEFAULT 1,
            platform                 TEXT,
            transaction_id           TEXT,
            original_transaction_id  TEXT,
            purchase_date            TEXT    NOT NULL,
            environment              TEXT,
            expires_at               TEXT    NOT NULL,
            created_at               TEXT    NOT NULL
        )
    """)
    await db.execute("CREATE INDEX IF NOT EXISTS idx_subscription_tx ON subscription(transaction_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_subscription_user ON subscription(customer_user_id)")
    await db.execute("""
        CREATE TABLE IF NOT EXISTS message_logs (
            id                 INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_user_id   TEXT NOT NULL,
            prompt             TEXT NOT NULL,
            generated_message  TEXT NOT NULL,
            ip                 TEXT,
            user_agent         TEXT,
            created_at         TEXT NOT NULL
        )
    """)
    await db.commit()
    return db


# ── Utilities ─────────────────────────────────────────────────────────────────

def now_utc() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def _row_to_subscription(row: aiosqlite.Row) -> Subscription:
    data = dict(row)
    data.pop("created_at", None)
    return Subscription(**data)


# ── Store ─────────────────────────────────────────────────────────────────────

class SubscriptionStore:
    """Sole writer of the subscription and message_logs tables."""

    def __init__(self, path: str = DATABASE_PATH) -> None:
        self.path = path

    async def init(self) -> None:
        try:
            db = await get_db(self.path)
            await db.close()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e

    async def _fetch_active(self, column: str, value: str) -> Subscription | None:
        try:
            db = await get_db(self.path)
            try:
                async with db.execute(
                    f"SELECT * FROM subscription WHERE {column} = ? AND is_active = 1 AND expires_at >= ? "
                    "ORDER BY expires_at DESC, id DESC LIMIT 1",
                    (value, now_utc()),
                ) as cursor:
                    row = await cursor.fetchone()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e

        return _row_to_subscription(row) if row else None

    async def get_active_subscription(self, customer_user_id: str) -> Subscription | None:
        return await self._fetch_active("customer_user_id", customer_user_id.strip())

    async def get_active_subscription_by_transaction_id(self, transaction_id: str) -> Subscription | None:
        return await self._fetch_active("transaction_id", transaction_id)

    async def add_subscription(self, subscription: Subscription) -> Subscription:
        """Insert only. Returns the record with its assigned id."""
        try:
            db = await get_db(self.path)
            try:
                cursor = await db.execute(
                    """
                    INSERT INTO subscription
                        (customer_user_id, product, price, currency, is_active, platform,
                         transaction_id, original_transaction_id, purchase_date, environment,
                         expires_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        subscription.customer_user_id,
                        subscription.product,
                        subscription.price,
                        subscription.currency,
                        int(subscription.is_active),
                        subscription.platform,
                        subscription.transaction_id,
                        subscription.original_transaction_id,
                        format_timestamp(subscription.purchase_date),
                        subscription.environment,
                        format_timestamp(subscription.expires_at),
                        now_utc(),
                    ),
                )
                await db.commit()
                new_id = cursor.lastrowid
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StoreError(str(e)) from e

        return subscription.model_copy(update={"id": new_id})

    async def log_message(self, entry: MessageLog) -> None:
        try:
            db = await get_db(self.path)
            try:
                await db.execute(
                    "INSERT INTO message_logs (customer_user_id, prompt, generated_message, ip, user_agent, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        entry.customer_user_id,
                        json.dumps(entry.prompt.model_dump()),
                        entry.generated_message,
                        entry.ip,
                        entry.user_agent,
                        now_utc(),
                    ),
                )
                await db.commit()
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StoreError(f"Failed to log message: {e}") from e

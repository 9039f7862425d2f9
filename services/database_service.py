import asyncio
import json
import logging
from datetime import datetime
from typing import Any, List, Optional

import aiosqlite

from interfaces.database_interface import IDatabase
from models import EventKind, Platform, PresenceEvent, Subscription, TrackedAccount

logger = logging.getLogger(__name__)


def _to_db_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return None


class DatabaseService(IDatabase):
    def __init__(self, db_path: str = "bot_data.db"):
        self.db_path = db_path
        self._lock = asyncio.Lock()

    async def initialize(self):
        """Initialize database tables"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute('''
                    CREATE TABLE IF NOT EXISTS tracked_accounts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        platform TEXT NOT NULL,
                        native_id TEXT NOT NULL,
                        handle TEXT NOT NULL,
                        display_name TEXT NOT NULL,
                        avatar_url TEXT,
                        followers INTEGER DEFAULT 0,
                        is_live BOOLEAN DEFAULT 0,
                        last_title TEXT,
                        last_stream_url TEXT,
                        last_thumbnail TEXT,
                        last_checked_at TIMESTAMP,
                        live_since TIMESTAMP,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE(platform, native_id)
                    )
                ''')

                await db.execute('''
                    CREATE TABLE IF NOT EXISTS presence_events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        account_id INTEGER NOT NULL,
                        kind TEXT NOT NULL,
                        title TEXT,
                        url TEXT,
                        thumbnail_url TEXT,
                        viewer_count INTEGER,
                        metadata TEXT DEFAULT '{}',
                        created_at TIMESTAMP NOT NULL,
                        FOREIGN KEY(account_id) REFERENCES tracked_accounts(id)
                    )
                ''')

                await db.execute('''
                    CREATE TABLE IF NOT EXISTS subscriptions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        guild_id INTEGER NOT NULL,
                        channel_id INTEGER NOT NULL,
                        account_id INTEGER NOT NULL,
                        is_active BOOLEAN DEFAULT 1,
                        message_template TEXT,
                        mention TEXT,
                        created_by TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE(guild_id, channel_id, account_id),
                        FOREIGN KEY(account_id) REFERENCES tracked_accounts(id)
                    )
                ''')

                # Add missing columns if they don't exist
                columns_to_add = [
                    ('tracked_accounts', 'last_thumbnail', 'TEXT'),
                    ('tracked_accounts', 'live_since', 'TIMESTAMP'),
                    ('subscriptions', 'mention', 'TEXT')
                ]

                for table, column_name, column_type in columns_to_add:
                    try:
                        await db.execute(f'''
                            ALTER TABLE {table}
                            ADD COLUMN {column_name} {column_type}
                        ''')
                    except aiosqlite.OperationalError as e:
                        if "duplicate column name" in str(e).lower():
                            pass  # column already exists
                        else:
                            raise e

                await db.commit()
        logger.info(f"Database initialized at {self.db_path}")

    def _account_from_row(self, row) -> TrackedAccount:
        return TrackedAccount(
            id=row['id'],
            platform=Platform.from_value(row['platform']),
            native_id=row['native_id'],
            handle=row['handle'],
            display_name=row['display_name'],
            avatar_url=row['avatar_url'],
            followers=row['followers'] or 0,
            is_live=bool(row['is_live']),
            last_title=row['last_title'],
            last_stream_url=row['last_stream_url'],
            last_thumbnail=row['last_thumbnail'],
            last_checked_at=_from_db_time(row['last_checked_at']),
            live_since=_from_db_time(row['live_since'])
        )

    async def get(self, platform: Platform, native_id: str) -> Optional[TrackedAccount]:
        """Get account by platform identity"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute('''
                    SELECT * FROM tracked_accounts
                    WHERE platform = ? AND native_id = ?
                ''', (platform.value, native_id)) as cursor:
                    row = await cursor.fetchone()
                    return self._account_from_row(row) if row else None

    async def list_all(self) -> List[TrackedAccount]:
        """Get all tracked accounts"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute('SELECT * FROM tracked_accounts ORDER BY id') as cursor:
                    rows = await cursor.fetchall()
                    return [self._account_from_row(row) for row in rows]

    async def add(self, account: TrackedAccount) -> TrackedAccount:
        """Register a new account, or return the stored one for the same identity"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute('''
                    INSERT INTO tracked_accounts (
                        platform, native_id, handle, display_name, avatar_url, followers
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(platform, native_id) DO NOTHING
                ''', (
                    account.platform.value,
                    account.native_id,
                    account.handle,
                    account.display_name,
                    account.avatar_url,
                    account.followers
                ))
                await db.commit()

        return await self.get(account.platform, account.native_id)

    async def save(self, account: TrackedAccount) -> None:
        """Persist presence fields"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute('''
                    UPDATE tracked_accounts
                    SET is_live = ?,
                        last_title = ?,
                        last_stream_url = ?,
                        last_thumbnail = ?,
                        last_checked_at = ?,
                        live_since = ?
                    WHERE platform = ? AND native_id = ?
                ''', (
                    account.is_live,
                    account.last_title,
                    account.last_stream_url,
                    account.last_thumbnail,
                    _to_db_time(account.last_checked_at),
                    _to_db_time(account.live_since),
                    account.platform.value,
                    account.native_id
                ))
                await db.commit()

    async def append(self, event: PresenceEvent) -> None:
        """Append event to the log"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute('''
                    INSERT INTO presence_events (
                        account_id, kind, title, url, thumbnail_url,
                        viewer_count, metadata, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    event.account_id,
                    event.kind.value,
                    event.title,
                    event.url,
                    event.thumbnail_url,
                    event.viewer_count,
                    json.dumps(event.metadata),
                    _to_db_time(event.timestamp)
                ))
                await db.commit()

    async def list_events(self, account_id: Optional[int] = None, limit: int = 50) -> List[PresenceEvent]:
        """Get the most recent events, newest first"""
        query = 'SELECT * FROM presence_events'
        params: List[Any] = []
        if account_id is not None:
            query += ' WHERE account_id = ?'
            params.append(account_id)
        query += ' ORDER BY id DESC LIMIT ?'
        params.append(limit)

        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(query, params) as cursor:
                    rows = await cursor.fetchall()

        return [
            PresenceEvent(
                account_id=row['account_id'],
                kind=EventKind(row['kind']),
                title=row['title'],
                url=row['url'],
                thumbnail_url=row['thumbnail_url'],
                viewer_count=row['viewer_count'],
                timestamp=_from_db_time(row['created_at']),
                metadata=json.loads(row['metadata'] or '{}')
            ) for row in rows
        ]

    async def add_subscription(self, subscription: Subscription) -> Subscription:
        """Add new subscription, or update the template and mention of an existing one"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute('''
                    INSERT INTO subscriptions (
                        guild_id, channel_id, account_id, is_active,
                        message_template, mention, created_by
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(guild_id, channel_id, account_id) DO UPDATE SET
                        is_active = excluded.is_active,
                        message_template = excluded.message_template,
                        mention = excluded.mention
                ''', (
                    subscription.guild_id,
                    subscription.channel_id,
                    subscription.account_id,
                    subscription.is_active,
                    subscription.message_template,
                    subscription.mention,
                    subscription.created_by
                ))
                await db.commit()

                async with db.execute('''
                    SELECT id FROM subscriptions
                    WHERE guild_id = ? AND channel_id = ? AND account_id = ?
                ''', (subscription.guild_id, subscription.channel_id, subscription.account_id)) as cursor:
                    row = await cursor.fetchone()

        subscription.id = row[0]
        return subscription

    async def list_active_for_account(self, account_id: int) -> List[Subscription]:
        """Get active subscriptions for account"""
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute('''
                    SELECT * FROM subscriptions
                    WHERE account_id = ? AND is_active = 1
                ''', (account_id,)) as cursor:
                    rows = await cursor.fetchall()
                    return [self._subscription_from_row(row) for row in rows]

    async def set_subscription_active(self, subscription_id: int, is_active: bool) -> bool:
        async with self._lock:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute('''
                    UPDATE subscriptions SET is_active = ? WHERE id = ?
                ''', (is_active, subscription_id))
                await db.commit()
                return cursor.rowcount > 0

    @staticmethod
    def _subscription_from_row(row) -> Subscription:
        return Subscription(
            id=row['id'],
            guild_id=row['guild_id'],
            channel_id=row['channel_id'],
            account_id=row['account_id'],
            is_active=bool(row['is_active']),
            message_template=row['message_template'],
            mention=row['mention'],
            created_by=row['created_by']
        )

"""SQLite database for scored tokens, tracked wallets and alert rules."""
import json
from datetime import datetime, timezone
from typing import Optional

import aiosqlite
import structlog

from tokenradar.models import ScoredToken, TrackedWallet

logger = structlog.get_logger()

DB_PATH = "tokenradar.db"


class Database:
    """Async SQLite database handler."""

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self):
        """Connect to database and create tables."""
        self._conn = await aiosqlite.connect(self.db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._create_tables()
        logger.info("database_connected", path=self.db_path)

    async def close(self):
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def _create_tables(self):
        """Create database tables if they don't exist."""
        await self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS tokens (
                contract_address TEXT PRIMARY KEY,
                symbol TEXT,
                name TEXT,
                chain TEXT DEFAULT 'solana',
                source TEXT,
                dex_id TEXT,
                pair_address TEXT,
                liquidity REAL,
                price_usd REAL,
                viral_score INTEGER DEFAULT 0,
                score_breakdown TEXT,
                is_honeypot INTEGER DEFAULT 0,
                security_status TEXT,
                website TEXT,
                twitter TEXT,
                telegram TEXT,
                launched_at TIMESTAMP,
                discovered_at TIMESTAMP,
                updated_at TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS tracked_wallets (
                address TEXT PRIMARY KEY,
                label TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS alert_rules (
                key TEXT PRIMARY KEY,
                min_buyers INTEGER,
                max_age_hours INTEGER,
                max_alerts INTEGER,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_tokens_score ON tokens(viral_score);
            CREATE INDEX IF NOT EXISTS idx_tokens_chain ON tokens(chain);
        """)
        await self.conn.commit()

    async def upsert_token(self, scored: ScoredToken):
        """Insert a scored token, or refresh score and market fields if already known."""
        pair = scored.token.pair
        verdict = scored.verdict
        now = datetime.now(timezone.utc).isoformat()

        await self.conn.execute("""
            INSERT INTO tokens (
                contract_address, symbol, name, chain, source, dex_id, pair_address,
                liquidity, price_usd, viral_score, score_breakdown, is_honeypot,
                security_status, website, twitter, telegram, launched_at,
                discovered_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(contract_address) DO UPDATE SET
                viral_score = excluded.viral_score,
                score_breakdown = excluded.score_breakdown,
                source = excluded.source,
                liquidity = COALESCE(excluded.liquidity, tokens.liquidity),
                price_usd = COALESCE(excluded.price_usd, tokens.price_usd),
                security_status = excluded.security_status,
                updated_at = excluded.updated_at
        """, (
            scored.token.key,
            scored.token.symbol,
            scored.token.name,
            pair.chain,
            scored.source,
            pair.dex_id,
            pair.pair_address,
            pair.liquidity_usd,
            pair.price_usd,
            scored.score,
            json.dumps(scored.breakdown.to_dict()),
            int(bool(verdict and verdict.is_honeypot)),
            verdict.status if verdict else "unavailable",
            pair.website,
            pair.twitter,
            pair.telegram,
            pair.created_at.isoformat() if pair.created_at else None,
            scored.discovered_at.isoformat(),
            now,
        ))
        await self.conn.commit()

    async def top_tokens(self, limit: int = 50, chain: str = "solana") -> list[dict]:
        """Best-scored tokens, highest first."""
        async with self.conn.execute("""
            SELECT * FROM tokens
            WHERE chain = ?
            ORDER BY viral_score DESC, discovered_at DESC
            LIMIT ?
        """, (chain, limit)) as cursor:
            rows = await cursor.fetchall()

        tokens = []
        for row in rows:
            token = dict(row)
            token["score_breakdown"] = json.loads(token["score_breakdown"]) if token["score_breakdown"] else None
            tokens.append(token)
        return tokens

    async def get_tracked_wallets(self) -> list[TrackedWallet]:
        async with self.conn.execute(
            "SELECT address, label FROM tracked_wallets ORDER BY created_at, rowid"
        ) as cursor:
            rows = await cursor.fetchall()
        return [TrackedWallet(address=row["address"], label=row["label"]) for row in rows]

    async def add_tracked_wallet(self, wallet: TrackedWallet):
        await self.conn.execute("""
            INSERT INTO tracked_wallets (address, label) VALUES (?, ?)
            ON CONFLICT(address) DO UPDATE SET label = excluded.label
        """, (wallet.address, wallet.label))
        await self.conn.commit()

    async def remove_tracked_wallet(self, address: str) -> bool:
        cursor = await self.conn.execute("DELETE FROM tracked_wallets WHERE address = ?", (address,))
        await self.conn.commit()
        return cursor.rowcount > 0

    async def get_alert_rule_row(self, key: str) -> Optional[dict]:
        async with self.conn.execute(
            "SELECT min_buyers, max_age_hours, max_alerts FROM alert_rules WHERE key = ?",
            (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def set_alert_rules(self, key: str, min_buyers: int, max_age_hours: int, max_alerts: int):
        await self.conn.execute("""
            INSERT OR REPLACE INTO alert_rules (key, min_buyers, max_age_hours, max_alerts, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """, (key, min_buyers, max_age_hours, max_alerts, datetime.now(timezone.utc).isoformat()))
        await self.conn.commit()

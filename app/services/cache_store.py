"""
services/cache_store.py
-----------------------

Persistent local cache of item lookups backed by SQLite.

One primary table is keyed by the composite cache key (identifier
fields plus store number) with secondary indexes on gtin, sku,
externalItemNo, storeNumber and lastAccessed; one metadata row holds
aggregate statistics recomputed after every mutation.

The cache is purely an optimisation. Every storage failure is logged
and degraded to a miss (``None`` / empty list / no-op) so a broken or
locked database file can never stop a product from being sold.
Expiration is lazy: an entry older than the TTL is deleted when it is
read. Size is bounded after writes: once the table holds more than the
configured maximum, the least recently accessed entries are evicted
until the retain ratio (80 % by default) is reached.

SQLite work runs in a worker thread so the event loop is never
blocked; a single connection is shared and guarded by a re-entrant
lock for the duration of each individual operation only.
"""

from __future__ import annotations

import asyncio
import json
import math
import sqlite3
import threading
from typing import Any, Callable, Dict, List, Optional

from app.core.config import get_settings
from app.logging_config import logger
from app.schemas.items import CachedEntry, CacheMetadata, ItemIdentifier, ItemPrice, ItemRecord
from app.utils.cache import build_cache_key, is_expired, now_ms

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS items (
        key TEXT PRIMARY KEY,
        gtin TEXT,
        sku TEXT,
        external_item_no TEXT,
        store_number INTEGER,
        item_text TEXT,
        brand_text TEXT,
        payload TEXT NOT NULL,
        last_updated INTEGER NOT NULL,
        last_accessed INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_items_gtin ON items (gtin)",
    "CREATE INDEX IF NOT EXISTS idx_items_sku ON items (sku)",
    "CREATE INDEX IF NOT EXISTS idx_items_external_item_no ON items (external_item_no)",
    "CREATE INDEX IF NOT EXISTS idx_items_store_number ON items (store_number)",
    "CREATE INDEX IF NOT EXISTS idx_items_last_accessed ON items (last_accessed)",
    "CREATE TABLE IF NOT EXISTS metadata (key TEXT PRIMARY KEY, data TEXT NOT NULL)",
)

_COLUMNS = "key, store_number, payload, last_updated, last_accessed"
_STATS_KEY = "stats"


class ItemCacheStore:
    """Read-through cache storage for catalog items.

    :param db_path: SQLite file, or ``":memory:"``; defaults to the settings
    :param ttl_seconds: entry lifetime measured from the last write
    :param max_items: entry count above which cleanup evicts
    :param retain_ratio: fraction of ``max_items`` kept after cleanup
    :param clock: returns the current time in epoch milliseconds
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        *,
        ttl_seconds: Optional[int] = None,
        max_items: Optional[int] = None,
        retain_ratio: Optional[float] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        settings = get_settings()
        self.db_path = db_path or settings.cache_db_path
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self.max_items = max_items if max_items is not None else settings.cache_max_items
        self.retain_ratio = retain_ratio if retain_ratio is not None else settings.cache_retain_ratio
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def is_initialized(self) -> bool:
        return self._conn is not None

    # -----------------------------------------------------------------
    # lifecycle
    # -----------------------------------------------------------------

    async def init(self) -> None:
        """Open the database and create tables and indexes. Idempotent.

        :raises sqlite3.Error: if the database cannot be opened
        """
        await asyncio.to_thread(self._init_sync)

    def _init_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            try:
                with conn:
                    for statement in _SCHEMA:
                        conn.execute(statement)
            except sqlite3.Error:
                conn.close()
                logger.error(f"Failed to open item cache database at {self.db_path}", exc_info=True)
                raise
            self._conn = conn
            logger.info(json.dumps({"event": "item_cache_opened", "path": self.db_path}))

    async def close(self) -> None:
        await asyncio.to_thread(self._close_sync)

    def _close_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    async def get(self, identifier: ItemIdentifier, store_number: Optional[int] = None) -> Optional[CachedEntry]:
        """Return the entry for an identifier, or ``None``.

        An entry past its TTL is deleted and reported as a miss; a hit
        refreshes ``last_accessed``.
        """
        return await asyncio.to_thread(self._get_sync, identifier, store_number)

    def _get_sync(self, identifier: ItemIdentifier, store_number: Optional[int]) -> Optional[CachedEntry]:
        key = build_cache_key(identifier, store_number)
        if not key:
            return None
        with self._lock:
            conn = self._connection("get")
            if conn is None:
                return None
            try:
                row = conn.execute(f"SELECT {_COLUMNS} FROM items WHERE key = ?", (key,)).fetchone()
                if row is None:
                    logger.debug(f"Cache miss: {key}")
                    return None
                now = self._clock()
                if is_expired(row[3], self.ttl_seconds, now):
                    logger.debug(f"Cache expired: {key}")
                    with conn:
                        conn.execute("DELETE FROM items WHERE key = ?", (key,))
                    self._refresh_metadata(conn)
                    return None
                entry = self._row_to_entry(row, last_accessed=now)
                if entry is None:
                    return None
                with conn:
                    conn.execute("UPDATE items SET last_accessed = ? WHERE key = ?", (now, key))
                logger.debug(f"Cache hit: {key}")
                return entry
            except sqlite3.Error:
                logger.warning(f"Item cache read failed for {key}; treating as miss", exc_info=True)
                return None

    async def search_by_text(self, term: str, store_number: Optional[int] = None) -> List[CachedEntry]:
        """Search cached entries for a term.

        Numeric terms are matched against gtin, every term against sku
        and externalItemNo (substring). Candidates are then narrowed by
        a case-insensitive substring match on item text or brand. An
        entry cached without a store matches any requested store.
        """
        return await asyncio.to_thread(self._search_sync, term, store_number)

    def _search_sync(self, term: str, store_number: Optional[int]) -> List[CachedEntry]:
        term = (term or "").strip()
        if not term:
            return []
        clauses = ["instr(sku, ?) > 0", "instr(external_item_no, ?) > 0"]
        params: List[Any] = [term, term]
        if term.isdigit():
            clauses.insert(0, "instr(gtin, ?) > 0")
            params.insert(0, term)
        sql = f"SELECT {_COLUMNS}, item_text, brand_text FROM items WHERE {' OR '.join(clauses)}"
        needle = term.lower()
        with self._lock:
            conn = self._connection("search")
            if conn is None:
                return []
            try:
                rows = conn.execute(sql, params).fetchall()
                now = self._clock()
                matches: Dict[str, CachedEntry] = {}
                expired: List[str] = []
                for row in rows:
                    key, row_store = row[0], row[1]
                    if store_number is not None and row_store is not None and row_store != store_number:
                        continue
                    if is_expired(row[3], self.ttl_seconds, now):
                        expired.append(key)
                        continue
                    item_text, brand_text = (row[5] or "").lower(), (row[6] or "").lower()
                    if needle not in item_text and needle not in brand_text:
                        continue
                    entry = self._row_to_entry(row[:5], last_accessed=now)
                    if entry is not None:
                        matches[key] = entry
                with conn:
                    if expired:
                        conn.executemany("DELETE FROM items WHERE key = ?", [(k,) for k in expired])
                    if matches:
                        conn.executemany("UPDATE items SET last_accessed = ? WHERE key = ?",
                                         [(now, k) for k in matches])
                if expired:
                    self._refresh_metadata(conn)
                logger.debug(f"Found {len(matches)} cached items for search: {term}")
                return list(matches.values())
            except sqlite3.Error:
                logger.warning(f"Item cache search failed for '{term}'", exc_info=True)
                return []

    # -----------------------------------------------------------------
    # writes
    # -----------------------------------------------------------------

    async def put(
        self,
        item: ItemRecord,
        prices: Optional[List[ItemPrice]] = None,
        store_number: Optional[int] = None,
        identifier: Optional[ItemIdentifier] = None,
    ) -> Optional[str]:
        """Upsert an item and trigger size-based cleanup.

        The row is keyed by ``identifier`` (the identifier the item was
        looked up with) or, when omitted, by the item's own identifier.
        Returns the cache key, or ``None`` when nothing was written.
        """
        return await asyncio.to_thread(self._put_sync, item, prices, store_number, identifier)

    def _put_sync(
        self,
        item: ItemRecord,
        prices: Optional[List[ItemPrice]],
        store_number: Optional[int],
        identifier: Optional[ItemIdentifier],
    ) -> Optional[str]:
        lookup_id = identifier or item.identifier
        if lookup_id is None or not lookup_id.has_any():
            logger.warning("Cannot cache item: item has no identifier")
            return None
        key = build_cache_key(lookup_id, store_number)
        own_id = item.identifier or ItemIdentifier()
        payload = json.dumps({
            "item": item.to_wire(),
            "prices": [p.to_wire() for p in prices] if prices is not None else None,
        })
        now = self._clock()
        with self._lock:
            conn = self._connection("put")
            if conn is None:
                return None
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO items
                            (key, gtin, sku, external_item_no, store_number,
                             item_text, brand_text, payload, last_updated, last_accessed)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            key,
                            own_id.gtin or lookup_id.gtin,
                            own_id.sku or lookup_id.sku,
                            own_id.external_item_no or lookup_id.external_item_no,
                            store_number,
                            item.item_text,
                            item.brand.text if item.brand else None,
                            payload,
                            now,
                            now,
                        ),
                    )
                logger.debug(f"Cached item: {key}")
                self._cleanup_locked(conn)
                self._refresh_metadata(conn)
                return key
            except sqlite3.Error:
                logger.warning(f"Failed to cache item {key}", exc_info=True)
                return None

    async def remove(self, identifier: ItemIdentifier, store_number: Optional[int] = None) -> None:
        """Delete an entry if present; absent entries are not an error."""
        await asyncio.to_thread(self._remove_sync, identifier, store_number)

    def _remove_sync(self, identifier: ItemIdentifier, store_number: Optional[int]) -> None:
        key = build_cache_key(identifier, store_number)
        with self._lock:
            conn = self._connection("remove")
            if conn is None:
                return
            try:
                with conn:
                    conn.execute("DELETE FROM items WHERE key = ?", (key,))
                self._refresh_metadata(conn)
                logger.debug(f"Removed cached item: {key}")
            except sqlite3.Error:
                logger.warning(f"Failed to remove cached item {key}", exc_info=True)

    async def cleanup(self) -> int:
        """Evict least recently accessed entries when over the maximum.

        Returns the number of entries deleted (0 when under the limit).
        """
        return await asyncio.to_thread(self._cleanup_sync)

    def _cleanup_sync(self) -> int:
        with self._lock:
            conn = self._connection("cleanup")
            if conn is None:
                return 0
            try:
                deleted = self._cleanup_locked(conn)
                if deleted:
                    self._refresh_metadata(conn)
                return deleted
            except sqlite3.Error:
                logger.warning("Item cache cleanup failed", exc_info=True)
                return 0

    def _cleanup_locked(self, conn: sqlite3.Connection) -> int:
        total = conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]
        if total <= self.max_items:
            return 0
        keep = math.floor(self.max_items * self.retain_ratio)
        to_delete = max(total - keep, 0)
        logger.info(f"Cache cleanup needed: {total} items > {self.max_items} max")
        with conn:
            conn.execute(
                "DELETE FROM items WHERE key IN "
                "(SELECT key FROM items ORDER BY last_accessed ASC, last_updated ASC LIMIT ?)",
                (to_delete,),
            )
        self._write_cleanup_timestamp(conn)
        logger.info(f"Cleaned up {to_delete} old cache entries")
        return to_delete

    async def purge_expired(self) -> int:
        """Delete every entry past its TTL. Used by the optional sweep."""
        return await asyncio.to_thread(self._purge_expired_sync)

    def _purge_expired_sync(self) -> int:
        cutoff = self._clock() - self.ttl_seconds * 1000
        with self._lock:
            conn = self._connection("purge")
            if conn is None:
                return 0
            try:
                with conn:
                    deleted = conn.execute("DELETE FROM items WHERE last_updated < ?", (cutoff,)).rowcount
                if deleted:
                    self._write_cleanup_timestamp(conn)
                    self._refresh_metadata(conn)
                    logger.info(f"Purged {deleted} expired cache entries")
                return deleted
            except sqlite3.Error:
                logger.warning("Item cache expiry sweep failed", exc_info=True)
                return 0

    async def clear(self) -> None:
        await asyncio.to_thread(self._clear_sync)

    def _clear_sync(self) -> None:
        with self._lock:
            conn = self._connection("clear")
            if conn is None:
                return
            try:
                with conn:
                    conn.execute("DELETE FROM items")
                self._refresh_metadata(conn)
                logger.info("Cache cleared successfully")
            except sqlite3.Error:
                logger.warning("Failed to clear item cache", exc_info=True)

    # -----------------------------------------------------------------
    # statistics
    # -----------------------------------------------------------------

    async def stats(self) -> CacheMetadata:
        return await asyncio.to_thread(self._stats_sync)

    def _stats_sync(self) -> CacheMetadata:
        with self._lock:
            conn = self._connection("stats")
            if conn is None:
                return CacheMetadata()
            try:
                metadata = self._read_metadata(conn)
                total = conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]
                return metadata.model_copy(update={"total_items": total})
            except sqlite3.Error:
                logger.warning("Failed to read item cache stats", exc_info=True)
                return CacheMetadata()

    def _read_metadata(self, conn: sqlite3.Connection) -> CacheMetadata:
        row = conn.execute("SELECT data FROM metadata WHERE key = ?", (_STATS_KEY,)).fetchone()
        if row is None:
            return CacheMetadata()
        try:
            return CacheMetadata.model_validate_json(row[0])
        except ValueError:
            return CacheMetadata()

    def _write_metadata(self, conn: sqlite3.Connection, metadata: CacheMetadata) -> None:
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, data) VALUES (?, ?)",
                (_STATS_KEY, metadata.model_dump_json()),
            )

    def _refresh_metadata(self, conn: sqlite3.Connection) -> None:
        total, oldest, newest = conn.execute(
            "SELECT COUNT(*), MIN(last_updated), MAX(last_updated) FROM items"
        ).fetchone()
        previous = self._read_metadata(conn)
        self._write_metadata(conn, CacheMetadata(
            total_items=total,
            oldest_entry_timestamp=oldest or 0,
            newest_entry_timestamp=newest or 0,
            last_cleanup_timestamp=previous.last_cleanup_timestamp,
        ))

    def _write_cleanup_timestamp(self, conn: sqlite3.Connection) -> None:
        previous = self._read_metadata(conn)
        self._write_metadata(conn, previous.model_copy(update={"last_cleanup_timestamp": self._clock()}))

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    def _connection(self, operation: str) -> Optional[sqlite3.Connection]:
        if self._conn is None:
            logger.warning(f"Cannot {operation} item cache: database not initialized")
        return self._conn

    def _row_to_entry(self, row: Any, last_accessed: int) -> Optional[CachedEntry]:
        key, store_number, payload, last_updated, _ = row
        try:
            data = json.loads(payload)
            prices = data.get("prices")
            return CachedEntry(
                key=key,
                item=ItemRecord.model_validate(data["item"]),
                prices=[ItemPrice.model_validate(p) for p in prices] if prices is not None else None,
                store_number=store_number,
                last_updated=last_updated,
                last_accessed=last_accessed,
            )
        except (ValueError, KeyError, TypeError):
            logger.warning(f"Discarding unreadable cache entry {key}", exc_info=True)
            return None

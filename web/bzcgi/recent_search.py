from __future__ import annotations

import logging
import os
import sqlite3
import time
from dataclasses import dataclass
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


DEFAULT_RECENT_SEARCH_DB = "/var/lib/bzcgi/recent_search.db"


@dataclass(frozen=True)
class RecentSearch:
    id: int
    user_id: int
    bug_list: str
    list_order: str
    created_ts: int

    @property
    def is_placeholder(self) -> bool:
        return self.bug_list == ""


class RecentSearchStore:
    """Per-user search history; a row's id becomes the list_id of a bug list URL."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or os.environ.get("RECENT_SEARCH_DB") or DEFAULT_RECENT_SEARCH_DB

    def _connect(self) -> sqlite3.Connection:
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        # Gunicorn workers may contend on the file; wait instead of failing.
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=30000")
        return conn

    def init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS profile_search (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    bug_list TEXT NOT NULL DEFAULT '',
                    list_order TEXT NOT NULL DEFAULT '',
                    created_ts INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_profile_search_user ON profile_search(user_id, id)"
            )
            conn.commit()

    @staticmethod
    def _row(row: sqlite3.Row) -> RecentSearch:
        return RecentSearch(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            bug_list=str(row["bug_list"]),
            list_order=str(row["list_order"]),
            created_ts=int(row["created_ts"]),
        )

    def create_placeholder(self, user_id: int) -> RecentSearch:
        """Reserve an id before the search runs, so a redirect can point at it."""
        if not user_id:
            raise ValueError("A placeholder needs a logged-in user.")
        self.init_db()
        now = int(time.time())
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT INTO profile_search(user_id, bug_list, list_order, created_ts) VALUES (?,?,?,?)",
                (int(user_id), "", "", now),
            )
            conn.commit()
            new_id = int(cur.lastrowid)
        logger.debug("Created search placeholder %s for user %s", new_id, user_id)
        return RecentSearch(id=new_id, user_id=int(user_id), bug_list="", list_order="", created_ts=now)

    def check_quietly(self, list_id, user_id: int) -> Optional[RecentSearch]:
        """The user's search with this id, or None; never raises for a bad id."""
        try:
            search_id = int(str(list_id).strip())
        except (TypeError, ValueError):
            return None
        if search_id <= 0 or not user_id:
            return None
        self.init_db()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, bug_list, list_order, created_ts FROM profile_search "
                "WHERE id = ? AND user_id = ?",
                (search_id, int(user_id)),
            ).fetchone()
        return self._row(row) if row else None

    def fill(self, list_id: int, user_id: int, bug_ids: Iterable[int], list_order: str = "") -> None:
        bug_list = ",".join(str(int(b)) for b in bug_ids)
        self.init_db()
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE profile_search SET bug_list = ?, list_order = ? WHERE id = ? AND user_id = ?",
                (bug_list, list_order or "", int(list_id), int(user_id)),
            )
            if cur.rowcount < 1:
                raise ValueError("Search not found.")
            conn.commit()


_recent_search_store: Optional[RecentSearchStore] = None


def get_recent_search_store() -> RecentSearchStore:
    global _recent_search_store
    if _recent_search_store is None:
        _recent_search_store = RecentSearchStore()
    return _recent_search_store

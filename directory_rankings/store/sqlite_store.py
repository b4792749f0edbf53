"""SQLite-backed directory store with transactional rank replacement."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from directory_rankings.store.directory_store import DirectoryStore
from directory_rankings.utils.errors import StoreError, TransientStoreError
from directory_rankings.utils.logging import get_logger
from directory_rankings.utils.types import (
    BoundingBox,
    Profile,
    ProfileMetrics,
    RankValue,
    Scope,
    ScopeKind,
    rank_from_storage,
)

logger = get_logger("store.sqlite")

# SQLite's default host-parameter limit is 999
_CHUNK = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS scopes (
    scope_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    latitude REAL,
    longitude REAL,
    custom_radius REAL,
    recommended_radius REAL
);
CREATE TABLE IF NOT EXISTS profiles (
    profile_id TEXT PRIMARY KEY,
    rating TEXT,
    review_count TEXT,
    boost TEXT,
    latitude REAL,
    longitude REAL
);
CREATE TABLE IF NOT EXISTS profile_scopes (
    profile_id TEXT NOT NULL,
    scope_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    position INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (profile_id, scope_id, kind)
);
CREATE TABLE IF NOT EXISTS profile_categories (
    profile_id TEXT NOT NULL,
    category_id TEXT NOT NULL,
    PRIMARY KEY (profile_id, category_id)
);
CREATE TABLE IF NOT EXISTS rank_values (
    profile_id TEXT NOT NULL,
    scope_id TEXT NOT NULL,
    kind TEXT NOT NULL,
    rank INTEGER NOT NULL,
    PRIMARY KEY (profile_id, scope_id, kind)
);
CREATE INDEX IF NOT EXISTS idx_profile_scopes_scope ON profile_scopes (scope_id, kind);
CREATE INDEX IF NOT EXISTS idx_profile_categories_category ON profile_categories (category_id);
CREATE INDEX IF NOT EXISTS idx_profiles_coords ON profiles (latitude, longitude);
CREATE INDEX IF NOT EXISTS idx_rank_values_scope ON rank_values (scope_id, kind);
"""


def _chunks(items: Sequence, size: int = _CHUNK) -> Iterator[Sequence]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _placeholders(n: int) -> str:
    return ",".join("?" * n)


class SQLiteDirectoryStore(DirectoryStore):
    """Directory store over a single SQLite database file."""

    def __init__(self, path: str | Path = ":memory:", timeout: float = 5.0):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, timeout=timeout, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open directory store at {self.path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteDirectoryStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def _errors(self):
        """Translate sqlite3 errors into store errors."""
        try:
            yield
        except sqlite3.OperationalError as e:
            message = str(e).lower()
            if "locked" in message or "busy" in message:
                raise TransientStoreError(str(e)) from e
            raise StoreError(str(e)) from e
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any exception."""
        with self._lock, self._errors():
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _query(self, sql: str, params: Sequence = ()) -> List[sqlite3.Row]:
        with self._lock, self._errors():
            return self._conn.execute(sql, tuple(params)).fetchall()

    # -- loading ----------------------------------------------------------

    def add_scope(self, scope: Scope) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO scopes VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    scope.scope_id,
                    scope.name,
                    scope.kind.value,
                    scope.latitude,
                    scope.longitude,
                    scope.custom_radius,
                    scope.recommended_radius,
                ),
            )

    def add_profile(self, profile: Profile) -> None:
        """Insert or replace a profile along with its memberships."""
        pid = profile.profile_id
        m = profile.metrics
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO profiles VALUES (?, ?, ?, ?, ?, ?)",
                (
                    pid,
                    None if m.rating is None else str(m.rating),
                    None if m.review_count is None else str(m.review_count),
                    str(m.boost),
                    profile.latitude,
                    profile.longitude,
                ),
            )
            conn.execute("DELETE FROM profile_scopes WHERE profile_id = ?", (pid,))
            conn.execute("DELETE FROM profile_categories WHERE profile_id = ?", (pid,))
            for kind, scope_ids in profile.scope_ids.items():
                conn.executemany(
                    "INSERT OR IGNORE INTO profile_scopes VALUES (?, ?, ?, ?)",
                    [(pid, sid, kind.value, i) for i, sid in enumerate(scope_ids)],
                )
            conn.executemany(
                "INSERT OR IGNORE INTO profile_categories VALUES (?, ?)",
                [(pid, cid) for cid in profile.category_ids],
            )

    def remove_profile(self, profile_id: str) -> None:
        with self.transaction() as conn:
            for table in ("profiles", "profile_scopes", "profile_categories", "rank_values"):
                conn.execute(f"DELETE FROM {table} WHERE profile_id = ?", (profile_id,))

    def set_raw_metrics(self, profile_id: str, rating=None, review_count=None, boost=None) -> None:
        """Write metric fields as loosely typed text, the way content tools do."""
        with self.transaction() as conn:
            conn.execute(
                "UPDATE profiles SET rating = ?, review_count = ?, boost = ? WHERE profile_id = ?",
                (rating, review_count, boost, profile_id),
            )

    # -- profiles ---------------------------------------------------------

    def list_profiles_in_scope(self, scope_id: str, category_id: Optional[str] = None) -> List[str]:
        sql = (
            "SELECT DISTINCT ps.profile_id FROM profile_scopes ps "
            "JOIN profiles p ON p.profile_id = ps.profile_id "
            "JOIN scopes s ON s.scope_id = ps.scope_id AND s.kind = ps.kind "
        )
        params: list = []
        if category_id is not None:
            sql += (
                "JOIN profile_categories pc ON pc.profile_id = ps.profile_id "
                "AND pc.category_id = ? "
            )
            params.append(category_id)
        sql += "WHERE ps.scope_id = ? ORDER BY ps.profile_id"
        params.append(scope_id)
        return [row["profile_id"] for row in self._query(sql, params)]

    def list_profiles_near(
        self,
        bbox: BoundingBox,
        category_id: Optional[str] = None,
        exclude_ids: Iterable[str] = (),
    ) -> List[str]:
        sql = "SELECT DISTINCT p.profile_id FROM profiles p "
        params: list = []
        if category_id is not None:
            sql += (
                "JOIN profile_categories pc ON pc.profile_id = p.profile_id "
                "AND pc.category_id = ? "
            )
            params.append(category_id)
        sql += (
            "WHERE p.latitude BETWEEN ? AND ? AND p.longitude BETWEEN ? AND ? "
            "ORDER BY p.profile_id"
        )
        params.extend([bbox.lat_min, bbox.lat_max, bbox.lon_min, bbox.lon_max])
        excluded = set(exclude_ids)
        return [
            row["profile_id"]
            for row in self._query(sql, params)
            if row["profile_id"] not in excluded
        ]

    def get_profile_metrics(self, profile_ids: Sequence[str]) -> Dict[str, ProfileMetrics]:
        result: Dict[str, ProfileMetrics] = {}
        ids = list(profile_ids)
        for chunk in _chunks(ids):
            rows = self._query(
                "SELECT profile_id, rating, review_count, boost FROM profiles "
                f"WHERE profile_id IN ({_placeholders(len(chunk))})",
                chunk,
            )
            for row in rows:
                result[row["profile_id"]] = ProfileMetrics.from_raw(
                    row["rating"], row["review_count"], row["boost"]
                )
        return result

    def get_profile_coordinates(self, profile_ids: Sequence[str]) -> Dict[str, Tuple[float, float]]:
        result: Dict[str, Tuple[float, float]] = {}
        ids = list(profile_ids)
        for chunk in _chunks(ids):
            rows = self._query(
                "SELECT profile_id, latitude, longitude FROM profiles "
                f"WHERE profile_id IN ({_placeholders(len(chunk))}) "
                "AND latitude IS NOT NULL AND longitude IS NOT NULL",
                chunk,
            )
            for row in rows:
                result[row["profile_id"]] = (row["latitude"], row["longitude"])
        return result

    def get_profile_scope_ids(self, profile_id: str) -> Dict[ScopeKind, List[str]]:
        rows = self._query(
            "SELECT scope_id, kind FROM profile_scopes WHERE profile_id = ? ORDER BY position",
            (profile_id,),
        )
        result: Dict[ScopeKind, List[str]] = {}
        for row in rows:
            result.setdefault(ScopeKind(row["kind"]), []).append(row["scope_id"])
        return result

    # -- ranks ------------------------------------------------------------

    def delete_rank_values(self, scope_id: str, kind: ScopeKind) -> None:
        with self.transaction() as conn:
            conn.execute(
                "DELETE FROM rank_values WHERE scope_id = ? AND kind = ?",
                (scope_id, kind.value),
            )

    def delete_rank_values_for(self, scope_id: str, kind: ScopeKind, profile_ids: Sequence[str]) -> None:
        ids = list(profile_ids)
        with self.transaction() as conn:
            for chunk in _chunks(ids):
                conn.execute(
                    "DELETE FROM rank_values WHERE scope_id = ? AND kind = ? "
                    f"AND profile_id IN ({_placeholders(len(chunk))})",
                    (scope_id, kind.value, *chunk),
                )

    def insert_rank_values(self, scope_id: str, kind: ScopeKind, ranks: Mapping[str, RankValue]) -> None:
        with self.transaction() as conn:
            self._insert_ranks(conn, scope_id, kind, ranks)

    def replace_rank_values(
        self,
        scope_id: str,
        kind: ScopeKind,
        ranks: Mapping[str, RankValue],
        profile_ids: Optional[Iterable[str]] = None,
    ) -> None:
        """Delete and re-insert a scope's ranks inside one transaction."""
        with self.transaction() as conn:
            if profile_ids is None:
                conn.execute(
                    "DELETE FROM rank_values WHERE scope_id = ? AND kind = ?",
                    (scope_id, kind.value),
                )
            else:
                for chunk in _chunks(list(profile_ids)):
                    conn.execute(
                        "DELETE FROM rank_values WHERE scope_id = ? AND kind = ? "
                        f"AND profile_id IN ({_placeholders(len(chunk))})",
                        (scope_id, kind.value, *chunk),
                    )
            self._insert_ranks(conn, scope_id, kind, ranks)

    @staticmethod
    def _insert_ranks(conn, scope_id: str, kind: ScopeKind, ranks: Mapping[str, RankValue]) -> None:
        conn.executemany(
            "INSERT OR REPLACE INTO rank_values VALUES (?, ?, ?, ?)",
            [(pid, scope_id, kind.value, rank.to_storage()) for pid, rank in ranks.items()],
        )

    def get_rank_values(self, scope_id: str, kind: ScopeKind) -> Dict[str, RankValue]:
        rows = self._query(
            "SELECT profile_id, rank FROM rank_values WHERE scope_id = ? AND kind = ?",
            (scope_id, kind.value),
        )
        return {row["profile_id"]: rank_from_storage(row["rank"]) for row in rows}

    # -- scopes and categories -------------------------------------------

    @staticmethod
    def _row_to_scope(row: sqlite3.Row) -> Scope:
        return Scope(
            scope_id=row["scope_id"],
            name=row["name"],
            kind=ScopeKind(row["kind"]),
            latitude=row["latitude"],
            longitude=row["longitude"],
            custom_radius=row["custom_radius"],
            recommended_radius=row["recommended_radius"],
        )

    def get_scope(self, scope_id: str) -> Optional[Scope]:
        rows = self._query("SELECT * FROM scopes WHERE scope_id = ?", (scope_id,))
        return self._row_to_scope(rows[0]) if rows else None

    def list_scopes(self, kind: ScopeKind, category_id: Optional[str] = None) -> List[Scope]:
        if category_id is None:
            rows = self._query("SELECT * FROM scopes WHERE kind = ?", (kind.value,))
        else:
            rows = self._query(
                "SELECT DISTINCT s.* FROM scopes s "
                "JOIN profile_scopes ps ON ps.scope_id = s.scope_id AND ps.kind = s.kind "
                "JOIN profile_categories pc ON pc.profile_id = ps.profile_id "
                "WHERE s.kind = ? AND pc.category_id = ?",
                (kind.value, category_id),
            )
        return [self._row_to_scope(row) for row in rows]

    def has_category(self, category_id: str) -> bool:
        rows = self._query(
            "SELECT 1 FROM profile_categories WHERE category_id = ? LIMIT 1",
            (category_id,),
        )
        return bool(rows)

    def set_recommended_radius(self, scope_id: str, radius: float) -> None:
        with self.transaction() as conn:
            conn.execute(
                "UPDATE scopes SET recommended_radius = ? WHERE scope_id = ?",
                (radius, scope_id),
            )

    def set_scope_coordinates(self, scope_id: str, latitude: float, longitude: float) -> None:
        with self.transaction() as conn:
            conn.execute(
                "UPDATE scopes SET latitude = ?, longitude = ? WHERE scope_id = ?",
                (latitude, longitude, scope_id),
            )

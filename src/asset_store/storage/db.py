import sqlite3
from pathlib import Path

from asset_store.errors import AssetNotFoundError
from asset_store.flags import flags_from_string, flags_to_string
from asset_store.models import AssetBase

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS fsassets (
    id TEXT PRIMARY KEY,
    type INTEGER NOT NULL,
    hash TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    asset_flags INTEGER NOT NULL DEFAULT 0,
    create_time INTEGER NOT NULL,
    access_time INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS fsassets_hash ON fsassets(hash);
"""

_NOW = "CAST(strftime('%s', 'now') AS INTEGER)"


class AssetMetadataStore:
    """Asset id -> content hash mapping plus descriptive metadata."""

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA_SQL)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "AssetMetadataStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _fetch_row(self, asset_id: str) -> sqlite3.Row:
        row = self.conn.execute("SELECT * FROM fsassets WHERE id = ? LIMIT 1", (asset_id,)).fetchone()
        if row is None:
            raise AssetNotFoundError(f"Asset not found: {asset_id}")
        return row

    def get(self, asset_id: str) -> AssetBase:
        row = self._fetch_row(asset_id)
        return AssetBase(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            type=row["type"],
            flags=flags_to_string(row["asset_flags"]),
            hash=row["hash"],
            create_time=row["create_time"],
            access_time=row["access_time"],
        )

    def get_hash(self, asset_id: str) -> str:
        return str(self._fetch_row(asset_id)["hash"])

    def get_hash_and_type(self, asset_id: str) -> tuple[str, int]:
        row = self._fetch_row(asset_id)
        return str(row["hash"]), int(row["type"])

    def put(self, asset: AssetBase) -> None:
        self.conn.execute(
            f"""
            INSERT INTO fsassets(
                id, type, hash, name, description, asset_flags, create_time, access_time
            ) VALUES (?, ?, ?, ?, ?, ?, {_NOW}, {_NOW})
            ON CONFLICT(id) DO UPDATE SET
                type = excluded.type,
                hash = excluded.hash,
                name = excluded.name,
                description = excluded.description,
                asset_flags = excluded.asset_flags,
                access_time = excluded.access_time
            """,
            (
                asset.id,
                asset.type,
                asset.hash,
                asset.name,
                asset.description,
                int(flags_from_string(asset.flags)),
            ),
        )
        self.conn.commit()

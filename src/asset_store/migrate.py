"""Rewrite legacy raw and gzip blobs into the current snappy codec.

Converted blobs are written next to the original, in the same shard
directory ``BlobStore`` computes, and are only trusted after both files
decompress to the same SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from tempfile import NamedTemporaryFile

from asset_store.errors import AssetStoreError, MigrationValidationError
from asset_store.storage.codecs import CURRENT_CODEC, GZIP, codec_for_path, open_blob, write_snappy

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


@dataclass
class MigrationFailure:
    path: str
    error: str


@dataclass
class MigrationReport:
    root: str
    scanned: int = 0
    converted: int = 0
    skipped: int = 0
    removed: int = 0
    failures: list[MigrationFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_json(self) -> str:
        payload = asdict(self)
        payload["failed"] = self.failed
        return json.dumps(payload, indent=2, sort_keys=True)


def find_legacy_blobs(root: Path) -> list[Path]:
    legacy: list[Path] = []
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            if filename.endswith(CURRENT_CODEC.suffix) or filename.endswith(TEMP_SUFFIX):
                continue
            legacy.append(Path(dirpath) / filename)
    return sorted(legacy)


def target_path(path: Path) -> Path:
    stem = path.name.removesuffix(GZIP.suffix) if path.name.endswith(GZIP.suffix) else path.name
    return path.parent / f"{stem}{CURRENT_CODEC.suffix}"


def convert(path: Path) -> Path | None:
    """Write the snappy sibling of ``path``; returns None when it already exists."""
    target = target_path(path)
    if target.exists():
        return None

    tmp_path: Path | None = None
    try:
        with open_blob(path, codec_for_path(path)) as reader, NamedTemporaryFile(
            mode="wb",
            prefix=f".{target.name}-",
            suffix=TEMP_SUFFIX,
            dir=target.parent,
            delete=False,
        ) as handle:
            tmp_path = Path(handle.name)
            write_snappy(reader, handle)
            handle.flush()
            os.fsync(handle.fileno())
        try:
            os.rename(tmp_path, target)
        except FileExistsError:
            return None
        tmp_path = None
        return target
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)


def content_digest(path: Path) -> str:
    hasher = hashlib.sha256()
    with open_blob(path, codec_for_path(path)) as reader:
        for chunk in iter(lambda: reader.read(64 * 1024), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def validate(old: Path, new: Path) -> None:
    old_digest = content_digest(old)
    new_digest = content_digest(new)
    if old_digest != new_digest:
        raise MigrationValidationError(
            f"Digest mismatch after conversion: {old} ({old_digest}) != {new} ({new_digest})"
        )


def migrate_tree(root: Path, *, remove_legacy: bool = False) -> MigrationReport:
    report = MigrationReport(root=str(root))
    legacy = find_legacy_blobs(root)
    report.scanned = len(legacy)

    for index, path in enumerate(legacy, start=1):
        logger.info("Processing file %d out of %d: %s", index, report.scanned, path)
        try:
            converted = convert(path)
            if converted is None:
                report.skipped += 1
                continue
            try:
                validate(path, converted)
            except (AssetStoreError, OSError):
                converted.unlink(missing_ok=True)
                raise
            report.converted += 1
            if remove_legacy:
                path.unlink()
                report.removed += 1
        except (AssetStoreError, OSError) as exc:
            logger.error("Failed to migrate %s: %s", path, exc)
            report.failures.append(MigrationFailure(path=str(path), error=f"{type(exc).__name__}: {exc}"))

    return report

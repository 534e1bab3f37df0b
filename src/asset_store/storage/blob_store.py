import base64
import binascii
import io
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from asset_store.errors import BlobNotFoundError, InvalidPayloadError
from asset_store.storage.codecs import CODECS, CURRENT_CODEC, Codec, CodecReader, open_blob, write_snappy
from asset_store.storage.content_address import address, location

logger = logging.getLogger(__name__)


class BlobStore:
    """Content-addressed blob store over a data directory and a spool directory.

    Blobs are staged in the spool directory and renamed into the data
    directory, so both roots must live on the same filesystem.
    """

    def __init__(self, data_dir: Path, spool_dir: Path, *, fsync_writes: bool = True) -> None:
        self.data_dir = data_dir
        self.spool_dir = spool_dir
        self.fsync_writes = fsync_writes
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.spool_dir.mkdir(parents=True, exist_ok=True)
        if _device_of(self.data_dir) != _device_of(self.spool_dir):
            raise ValueError(
                f"Spool directory {self.spool_dir} must be on the same filesystem "
                f"as data directory {self.data_dir}"
            )

    def path_for(self, digest: str, codec: Codec) -> Path:
        base = location(self.data_dir, digest)
        return base.parent / f"{base.name}{codec.suffix}"

    def locate(self, digest: str) -> tuple[Path, Codec] | None:
        for codec in CODECS:
            candidate = self.path_for(digest, codec)
            if candidate.exists():
                logger.debug("Found blob %s as %s", digest, codec.name)
                return candidate, codec
        return None

    def exists(self, digest: str) -> bool:
        return self.locate(digest) is not None

    def load(self, digest: str) -> CodecReader:
        found = self.locate(digest)
        if found is None:
            raise BlobNotFoundError(f"Blob not found: {digest}")
        path, codec = found
        try:
            return open_blob(path, codec)
        except FileNotFoundError as exc:
            # removed between probe and open, e.g. by a legacy migration
            raise BlobNotFoundError(f"Blob not found: {digest}") from exc

    def store(self, payload: str) -> str:
        try:
            # line breaks inside the encoding are tolerated, anything else is not
            raw = base64.b64decode(payload.replace("\r", "").replace("\n", ""), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidPayloadError(f"Payload is not valid base64: {exc}") from exc
        return self.store_bytes(raw)

    def store_bytes(self, raw: bytes) -> str:
        digest = address(raw)
        if self.exists(digest):
            logger.info("Blob %s already stored, skipping write", digest)
            return digest

        target = self.path_for(digest, CURRENT_CODEC)
        target.parent.mkdir(parents=True, exist_ok=True)
        spool_parent = location(self.spool_dir, digest).parent
        spool_parent.mkdir(parents=True, exist_ok=True)

        spool_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="wb",
                prefix=f"{digest}-",
                suffix=".tmp",
                dir=spool_parent,
                delete=False,
            ) as handle:
                spool_path = Path(handle.name)
                write_snappy(io.BytesIO(raw), handle)
                handle.flush()
                if self.fsync_writes:
                    os.fsync(handle.fileno())

            try:
                os.rename(spool_path, target)
            except FileExistsError:
                logger.info("Blob %s was committed by a concurrent writer", digest)
            except OSError as exc:
                logger.warning("Failed to commit blob %s to %s: %s", digest, target, exc)
                raise
            else:
                spool_path = None
                if self.fsync_writes:
                    _fsync_directory(target.parent)
                logger.debug("Committed blob %s (%d bytes)", digest, len(raw))
        finally:
            if spool_path is not None:
                spool_path.unlink(missing_ok=True)
        return digest

    def get_as_base64(self, digest: str) -> str:
        with self.load(digest) as reader:
            return base64.b64encode(reader.read()).decode("ascii")


def _device_of(path: Path) -> int:
    return path.stat().st_dev


def _fsync_directory(path: Path) -> None:
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)

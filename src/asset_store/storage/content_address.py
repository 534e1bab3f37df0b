import hashlib
import re
from pathlib import Path

SHARD_WIDTH = 3

_HEX_PATTERN = re.compile(r"^[0-9A-Fa-f]+$")


def address(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest().upper()


def location(base_dir: Path, address: str) -> Path:
    """Return ``base_dir/<addr[0:3]>/<addr[3:6]>/<addr>`` for a content address."""
    if len(address) < 2 * SHARD_WIDTH or not _HEX_PATTERN.match(address):
        raise ValueError(f"Invalid content address: {address[:70]!r}")
    return base_dir / address[:SHARD_WIDTH] / address[SHARD_WIDTH : 2 * SHARD_WIDTH] / address

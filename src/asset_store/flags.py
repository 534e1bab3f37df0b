from enum import IntFlag


class AssetFlags(IntFlag):
    NORMAL = 0
    MAPTILE = 1
    REWRITABLE = 2
    COLLECTABLE = 4


_NAMED_FLAGS = (
    ("Maptile", AssetFlags.MAPTILE),
    ("Rewritable", AssetFlags.REWRITABLE),
    ("Collectable", AssetFlags.COLLECTABLE),
)


def flags_from_string(value: str) -> AssetFlags:
    """Parse a comma separated flag list; matching is case-insensitive and unknown names are ignored."""
    by_name = {name.lower(): flag for name, flag in _NAMED_FLAGS}
    result = AssetFlags.NORMAL
    for part in value.lower().split(","):
        result |= by_name.get(part.strip(), AssetFlags.NORMAL)
    return result


def flags_to_string(flags: int) -> str:
    return ",".join(name for name, flag in _NAMED_FLAGS if flags & flag == flag)

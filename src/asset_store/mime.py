DEFAULT_MIME = "application/octet-stream"
UNKNOWN_ASSET_TYPE = -1

ASSET_TYPE_TO_MIME: dict[int, str] = {
    0: "image/jp2",
    1: "application/ogg",
    2: "application/x-metaverse-callingcard",
    3: "application/x-metaverse-landmark",
    5: "application/x-metaverse-clothing",
    6: "application/x-metaverse-primitive",
    7: "application/x-metaverse-notecard",
    8: "application/x-metaverse-folder",
    10: "application/x-metaverse-lsl",
    11: "application/x-metaverse-lso",
    12: "image/tga",
    13: "application/x-metaverse-bodypart",
    17: "audio/x-wav",
    19: "image/jpeg",
    20: "application/x-metaverse-animation",
    21: "application/x-metaverse-gesture",
    22: "application/x-metaverse-simstate",
}

MIME_TO_ASSET_TYPE: dict[str, int] = {mime: asset_type for asset_type, mime in ASSET_TYPE_TO_MIME.items()}


def mime_to_asset_type(mime: str) -> int:
    return MIME_TO_ASSET_TYPE.get(mime, UNKNOWN_ASSET_TYPE)


def asset_type_to_mime(asset_type: int) -> str:
    return ASSET_TYPE_TO_MIME.get(asset_type, DEFAULT_MIME)

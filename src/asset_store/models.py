from dataclasses import dataclass


@dataclass
class AssetBase:
    id: str
    name: str = ""
    description: str = ""
    type: int = 0
    flags: str = ""
    creator_id: str = ""
    temporary: bool = False
    local: bool = False
    hash: str = ""
    create_time: int = 0
    access_time: int = 0


@dataclass
class FullAssetData(AssetBase):
    data: str = ""

import logging
from dataclasses import asdict

from asset_store.errors import AssetNotFoundError
from asset_store.models import AssetBase, FullAssetData
from asset_store.storage.blob_store import BlobStore
from asset_store.storage.codecs import CodecReader
from asset_store.storage.db import AssetMetadataStore

logger = logging.getLogger(__name__)


class AssetService:
    """Resolves asset ids to content hashes and delegates payload I/O to the blob store."""

    def __init__(self, metadata: AssetMetadataStore, blobs: BlobStore) -> None:
        self.metadata = metadata
        self.blobs = blobs

    def get_full_asset_data(self, asset_id: str) -> FullAssetData:
        asset = self.metadata.get(asset_id)
        return FullAssetData(**asdict(asset), data=self.blobs.get_as_base64(asset.hash))

    def get_asset_metadata(self, asset_id: str) -> AssetBase:
        return self.metadata.get(asset_id)

    def get_asset_data(self, asset_id: str) -> tuple[CodecReader, int]:
        digest, asset_type = self.metadata.get_hash_and_type(asset_id)
        return self.blobs.load(digest), asset_type

    def create_asset(self, asset: FullAssetData) -> AssetBase:
        # the blob is committed before the metadata row points at it
        asset.hash = self.blobs.store(asset.data)
        fields = asdict(asset)
        fields.pop("data")
        base = AssetBase(**fields)
        self.metadata.put(base)
        logger.debug("Created asset %s -> %s", asset.id, asset.hash)
        return base

    def asset_exists(self, asset_id: str) -> bool:
        try:
            digest = self.metadata.get_hash(asset_id)
        except AssetNotFoundError:
            return False
        return self.blobs.exists(digest)

    def assets_exist(self, asset_ids: list[str]) -> list[bool]:
        return [self.asset_exists(asset_id) for asset_id in asset_ids]

class AssetStoreError(RuntimeError):
    pass


class InvalidPayloadError(AssetStoreError, ValueError):
    pass


class BlobNotFoundError(AssetStoreError, FileNotFoundError):
    pass


class CodecError(AssetStoreError):
    pass


class AssetNotFoundError(AssetStoreError, KeyError):
    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class MigrationValidationError(AssetStoreError):
    pass

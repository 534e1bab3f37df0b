from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    asset_data_dir: Path = Field(default=Path("asset/data"), alias="ASSET_DATA_DIR")
    asset_spool_dir: Path = Field(default=Path("asset/tmp"), alias="ASSET_SPOOL_DIR")
    asset_db_path: Path = Field(default=Path("asset/assets.sqlite3"), alias="ASSET_DB_PATH")
    asset_fsync_writes: bool = Field(default=True, alias="ASSET_FSYNC_WRITES")
    asset_log_level: str = Field(default="WARNING", alias="ASSET_LOG_LEVEL")

    @field_validator("asset_log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value!r}")
        return normalized

    @model_validator(mode="after")
    def normalize_paths(self) -> "AppSettings":
        self.asset_data_dir = self.asset_data_dir.expanduser()
        self.asset_spool_dir = self.asset_spool_dir.expanduser()
        self.asset_db_path = self.asset_db_path.expanduser()
        return self

import json
from functools import lru_cache
from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Vidremix API"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # Storage - uploads and outputs live under storage_root, keyed by random ids
    storage_root: str = "/tmp/vidremix"
    # Operator-curated background music directory
    bgm_dir_raw: str = ""
    # Flat JSON file holding saved option presets
    presets_path_raw: str = ""

    @computed_field
    @property
    def upload_dir(self) -> Path:
        return Path(self.storage_root) / "uploads"

    @computed_field
    @property
    def output_dir(self) -> Path:
        return Path(self.storage_root) / "outputs"

    @computed_field
    @property
    def bgm_dir(self) -> Path:
        if self.bgm_dir_raw:
            return Path(self.bgm_dir_raw)
        return Path(self.storage_root) / "assets" / "audio"

    @computed_field
    @property
    def presets_path(self) -> Path:
        if self.presets_path_raw:
            return Path(self.presets_path_raw)
        return Path(self.storage_root) / "data" / "presets.json"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "*"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # File Upload
    max_upload_size_mb: int = 1024
    # Sources smaller than this (either side) are rejected; the 98% crop
    # followed by even rounding would otherwise collapse to zero
    min_video_dimension: int = 16

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Preview encoding (low latency, streamed)
    preview_video_preset: str = "veryfast"
    preview_crf: int = 28
    preview_max_duration_s: float = 60.0

    # Export encoding (final output)
    export_video_preset: str = "fast"
    export_crf: int = 23

    # Background music mixing
    mix_sample_rate: int = 44100
    default_bgm_volume: float = 0.08

    # Subprocess time limits (seconds)
    transform_timeout_s: int = 3600
    preview_timeout_s: int = 120

    # Retention of uploads/outputs
    retention_ttl_s: int = 3600
    cleanup_interval_s: int = 600


@lru_cache
def get_settings() -> Settings:
    return Settings()

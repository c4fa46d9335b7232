from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


DEFAULT_DISCO_API_URL = "https://api.foojay.io"
DEFAULT_API_PATH = "/disco/v2.0"


class ClientConfig(BaseModel):
    """
    Settings for the disco client and its cache.
    Optionally loaded from the JSON file named by DISCO_CACHE_CONFIG.
    """

    disco_api_url: str = Field(
        default=DEFAULT_DISCO_API_URL,
        description="Base URL of the disco service (overridable with DISCO_API_URL).",
    )
    api_path: str = Field(
        default=DEFAULT_API_PATH,
        description="Path prefix of the disco API version in use.",
    )
    initial_delay_seconds: float = Field(
        default=1,
        ge=0,
        description="Delay before the first catalog refresh after start().",
    )
    refresh_interval_seconds: float = Field(
        default=3600,
        gt=0,
        description="Period between catalog refreshes, measured from refresh start.",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout applied to every request against the disco service.",
    )
    max_concurrent_downloads: int = Field(
        default=2,
        ge=1,
        description="Number of package downloads allowed to run at the same time.",
    )
    download_chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Chunk size used when streaming package downloads to disk.",
    )

    @field_validator("disco_api_url", "api_path")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def base_url(self) -> str:
        return f"{self.disco_api_url}{self.api_path}"

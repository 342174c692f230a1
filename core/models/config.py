"""
Configuration models for keen-client.

Handles project credentials, ingestion server settings, and local queue limits.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    """Ingestion API connection configuration"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    url: str = "https://api.keen.io"
    api_version: str = "3.0"
    timeout: float = Field(default=30.0, gt=0, le=600.0)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate server URL format"""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Server URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('api_version')
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        """API version is a single path segment"""
        v = v.strip('/')
        if not v or '/' in v:
            raise ValueError(f'Invalid API version: {v!r}')
        return v


class StorageConfig(BaseModel):
    """Local event queue limits"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Per-collection capacity and how many of the oldest records to drop once it is hit
    max_events_per_collection: int = Field(default=1000, ge=1)
    events_to_forget: int = Field(default=2, ge=1)

    # Directory created under the cache dir to hold all collections
    cache_dirname: str = "keen"

    @field_validator('cache_dirname')
    @classmethod
    def validate_cache_dirname(cls, v: str) -> str:
        """Cache dirname must be a single path component"""
        if not v or '/' in v or '\\' in v or v in ('.', '..'):
            raise ValueError(f'Invalid cache directory name: {v!r}')
        return v


class GlobalSettings(BaseSettings):
    """Process-wide settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="KEEN_",
        case_sensitive=False
    )

    default_cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache"
    )
    default_server_url: str = "https://api.keen.io"

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")


class ClientConfig(BaseModel):
    """Complete configuration of one client instance"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Project identification and credentials
    project_id: str
    write_key: Optional[str] = None
    read_key: Optional[str] = None

    # Application cache root; the queue lives in <cache_dir>/<storage.cache_dirname>
    cache_dir: Path = Field(default_factory=lambda: GlobalSettings().default_cache_dir)

    # Component configurations
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Run uploads on a worker thread instead of the caller's thread
    background_uploads: bool = True

    @field_validator('project_id')
    @classmethod
    def validate_project_id(cls, v: str) -> str:
        """Project ID must be a non-empty string"""
        if not v:
            raise ValueError(f'Invalid project ID specified: {v!r}')
        return v

    @field_validator('write_key', 'read_key')
    @classmethod
    def validate_keys(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank keys as missing"""
        return v or None

    @field_validator('cache_dir')
    @classmethod
    def validate_cache_dir(cls, v: Path) -> Path:
        """Expand user home in cache dir"""
        return v.expanduser()

    @property
    def storage_root(self) -> Path:
        """Directory holding one sub-directory per collection"""
        return self.cache_dir / self.storage.cache_dirname

    @property
    def events_url(self) -> str:
        """Endpoint that accepts event batches for this project"""
        return f"{self.server.url}/{self.server.api_version}/projects/{self.project_id}/events"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        data = self.model_dump()
        data['cache_dir'] = str(data['cache_dir'])
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ClientConfig':
        """Create from dictionary"""
        if 'cache_dir' in data and data['cache_dir'] is not None:
            data['cache_dir'] = Path(data['cache_dir'])
        return cls(**data)

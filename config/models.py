from pydantic import BaseModel, Field
from typing import Optional


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


class ObjectStoreConfig(BaseModel):
    provider: str = Field("github", description="Object store backend ('github' or 'memory')")
    owner: Optional[str] = Field(None, description="Account owning the repositories")
    api_url: str = "https://api.github.com"
    token: Optional[str] = None
    token_env_var: str = "GITHUB_TOKEN"
    timeout_sec: float = 30


class ContextStoreConfig(BaseModel):
    backend: str = "memory"
    retention_sec: int = Field(24 * 60 * 60, description="Contexts older than this are evicted")
    sweep_interval_sec: int = Field(60 * 60, description="Interval between eviction sweeps")
    preview_length: int = Field(120, description="Maximum length of a search match preview")
    default_branch: str = "main"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig, description="HTTP server settings")
    object_store: ObjectStoreConfig = Field(default_factory=ObjectStoreConfig, description="Remote repository backend")
    context_store: ContextStoreConfig = Field(default_factory=ContextStoreConfig, description="Context Store settings")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging settings")

"""Application configuration using environment variables."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    
    # API settings
    api_title: str = "ML Pipeline API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api"
    
    # Logging
    log_level: str = "INFO"
    
    # Database settings
    database_url: str = "sqlite+aiosqlite:///./ml_pipeline.db"
    
    # Tenant used when the caller does not supply one
    default_tenant_id: str = "default"
    max_tenants: int = 1000  # Tenants whose services are held in memory at once
    
    # Training settings
    training_timeout_seconds: float = 600.0  # Deadline per training job
    
    # Artifact cache settings
    artifact_cache_size: int = 128
    artifact_cache_ttl_seconds: float = 300.0


# Global settings instance
settings = Settings()

"""
Application Configuration

Manages environment variables and agent settings using Pydantic Settings.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:*"]

    # Google Gemini (chat generation)
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    max_response_tokens: int = 500
    temperature: float = 0.7
    top_p: float = 0.9
    model_load_retries: int = 10
    model_load_retry_delay: float = 1.0

    # Embeddings / index
    embedding_backend: str = "auto"  # auto, gemini, local or hashing
    embedding_model: str = "gemini-embedding-001"
    local_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimension: int = 384
    chunk_size: int = 500
    chunk_overlap: int = 50
    search_top_k: int = 10

    # Provider registry
    registry_backend: str = "near"  # near or memory
    near_rpc_url: str = "https://rpc.testnet.near.org"
    registry_contract_id: str = "contract1.iseahorse.testnet"

    # Timeouts (seconds)
    provider_fetch_timeout: float = 15.0
    generation_timeout: float = 120.0

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()

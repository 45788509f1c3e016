from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # OpenAI
    openai_api_key: str
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_dim: int | None = Field(default=None, ge=1)
    embedding_batch_size: int = Field(default=256, ge=1)

    # Qdrant (qdrant_url takes precedence over host/port)
    qdrant_url: str | None = None
    qdrant_api_key: str | None = None
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_grpc_port: int = 6334
    qdrant_prefer_grpc: bool = False
    qdrant_https: bool = False

    # Collection layout
    qdrant_collection: str = "documents"
    text_key: str = "text"
    metadata_keys: list[str] = Field(default_factory=list)

    # Logging
    log_level: str = "INFO"

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str | None = None
    collection_name: str = "customer_docs"

    top_k: int = Field(default=3, ge=1, le=50)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    chunk_size: int = Field(default=500, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)

    embeddings_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    tts_model: str = "tts-1"
    tts_voice: str = "alloy"
    stt_model: str = "whisper-1"

    upload_max_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    audio_max_bytes: int = Field(default=25 * 1024 * 1024, gt=0)
    ingest_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()

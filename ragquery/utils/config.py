"""Configuration management using environment variables and pydantic."""

from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["*"]

    # Corpus Configuration
    corpus_path: str = "./embedded_content.json"
    embedding_dimension: Optional[int] = None  # Checked against the corpus when set
    verify_embedding_on_startup: bool = True

    # Embedding Provider Configuration
    embedding_provider: Literal["openai", "ollama"] = "openai"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    embedding_model: str = "text-embedding-3-small"

    # Completion Provider Configuration
    completion_provider: Literal["anthropic", "ollama"] = "anthropic"
    anthropic_api_key: str = ""
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    completion_model: str = "claude-3-5-sonnet-20241022"

    # Ollama Configuration
    ollama_base_url: str = "http://localhost:11434"
    ollama_model_name: str = "llama3.2:3b"
    ollama_embedding_model: str = "mxbai-embed-large"

    # Response Configuration
    max_response_tokens: int = 1000
    response_temperature: float = 0.7
    request_timeout_seconds: float = 60.0

    # RAG Configuration
    rag_selector_strategy: Literal["vector", "lexical"] = "vector"
    rag_similarity_threshold: float = 0.4
    rag_fallback_count: int = 2
    rag_max_selected: int = 4
    rag_context_char_budget: int = 8000
    rag_tag_match: Literal["exact", "substring"] = "exact"
    rag_context_injection: Literal["last_user", "first_user", "turn"] = "last_user"
    rag_lexical_fallback: bool = True

    # Persona Configuration
    assistant_company_name: str = "Digital Labor Factory"
    assistant_contact_url: str = "https://www.digitallaborfactory.ai/contact"
    suggestions_enabled: bool = True

    # Feedback Configuration
    feedback_log_path: str = "./feedback-log.jsonl"

    # Logging Configuration
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file_path: str = ""  # Empty disables the file handler
    log_max_size_mb: int = 100
    log_backup_count: int = 5


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

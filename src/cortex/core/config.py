"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: CORTEX_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CORTEX_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="cortex.db", description="SQLite database name")
    log_name: str = Field(default="cortex.log", description="Log file name inside data_dir")

    # Models
    models_file: Path | None = Field(
        default=None,
        description="Model registry YAML (defaults to the bundled configs/models.yaml)",
    )
    max_response_tokens: int = Field(default=300, description="Max tokens per reply")

    # Episodic memory
    recent_episode_capacity: int = Field(
        default=50, description="Episodes kept in the in-memory recent cache"
    )

    # Working memory
    working_memory_slots: int = Field(
        default=7, description="Evictable working memory slots (Miller's Law)"
    )
    working_memory_turns: int = Field(
        default=4, description="Conversation turn pairs kept in working memory"
    )
    max_history_turns: int = Field(
        default=10, description="Conversation turn pairs kept in dialogue history"
    )

    # Context assembly
    max_context_facts: int = Field(default=10, description="Facts in the summary block")
    context_fact_slots: int = Field(default=5, description="Facts pushed to working memory")
    context_rule_slots: int = Field(default=3, description="Rules pushed per turn")
    context_episode_limit: int = Field(default=3, description="Episodes retrieved per turn")
    min_procedure_confidence: float = Field(
        default=0.3, description="Confidence floor for a procedure to be used in context"
    )

    # Retrieval
    retrieval_limit: int = Field(default=5, description="Default retrieval result count")
    min_query_length: int = Field(
        default=10, description="Queries shorter than this skip semantic search"
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_name


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()

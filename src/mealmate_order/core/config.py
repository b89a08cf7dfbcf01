"""
Runtime settings, read from MEALMATE_* environment variables or a .env file.
"""

import functools
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Reasoning agent
    agent_backend: Literal["ollama", "anthropic", "none"] = "ollama"
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:7b"
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MEALMATE_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4096
    max_agent_rounds: int = Field(default=50, ge=1)
    round_timeout_seconds: float = 60.0

    # Swiggy Instamart
    instamart_url: str = "https://mcp.swiggy.com/im"
    request_timeout_seconds: float = 15.0

    # Storage
    db_path: str = "data/mealmate_orders.db"

    # Scripted chat flow
    flow_settle_delay_seconds: float = 2.0

    model_config = SettingsConfigDict(
        env_prefix="MEALMATE_", env_file=".env", env_file_encoding="utf-8", extra="ignore",
        populate_by_name=True)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

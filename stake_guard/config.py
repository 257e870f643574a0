"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "stake-guard"
    debug: bool = False
    log_level: str = "INFO"

    # Chain telemetry
    chain_rest_url: str = "https://rest.atlantic-2.seinetwork.io"
    delegations_api_url: str = "https://sei.explorers.guru/api"
    http_timeout_seconds: float = 3.0
    token_symbol: str = "SEI"
    token_decimals: int = 6
    share_decimals: int = 18
    validator_list_limit: int = 100

    # Completion providers: "none", "gemini" or "ollama"
    ai_provider: str = "none"
    ai_timeout_seconds: float = 5.0
    local_ai_timeout_seconds: float = 30.0
    composer_timeout_seconds: float = 5.0
    history_window: int = 8

    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.3
    gemini_max_output_tokens: int = 1024

    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3:8b"
    ollama_temperature: float = 0.7
    ollama_num_predict: int = 400

    # Sessions
    chat_session_ttl_hours: int = 24
    conversation_session_ttl_hours: int = 1
    sweep_interval_minutes: int = 60

    model_config = {"env_prefix": "STAKE_GUARD_"}


settings = Settings()

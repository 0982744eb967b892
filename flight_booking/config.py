"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("flight_booking.config")


class Settings(BaseSettings):
    # LLM (slot extraction + affirmation)
    llm_provider: str = "claude"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    anthropic_url: str = "https://api.anthropic.com"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    llm_timeout_seconds: float = 20.0
    llm_max_retries: int = 0

    # Amadeus flight offers
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"
    offer_currency: str = "USD"
    offer_max_results: int = 50
    token_expiry_margin_seconds: int = 60
    offer_timeout_seconds: float = 15.0

    # Airport reference data
    airport_data_url: str = (
        "https://raw.githubusercontent.com/mwgg/Airports/master/airports.json"
    )
    directory_timeout_seconds: float = 30.0

    # Dialog policy
    max_collect_attempts: int = 5  # 0 = unlimited re-prompts
    max_menu_airlines: int = 3
    session_ttl_seconds: int = 1800

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-ant-...", "changeme", "your-client-id"}

        if self.llm_provider not in ("claude", "ollama"):
            raise ValueError(
                f"LLM_PROVIDER must be 'claude' or 'ollama', got {self.llm_provider!r}."
            )

        # Claude needs an API key
        if self.llm_provider == "claude":
            if not self.anthropic_api_key or self.anthropic_api_key in _placeholders:
                raise ValueError(
                    "ANTHROPIC_API_KEY is missing or still a placeholder. "
                    "Set it in .env to use Claude."
                )

        # Searches fail soft without Amadeus credentials
        if (
            not self.amadeus_client_id
            or not self.amadeus_client_secret
            or self.amadeus_client_id in _placeholders
        ):
            warnings.append(
                "AMADEUS_CLIENT_ID / AMADEUS_CLIENT_SECRET not set — "
                "every flight search will report no flights."
            )

        if self.token_expiry_margin_seconds < 0:
            raise ValueError("TOKEN_EXPIRY_MARGIN_SECONDS must not be negative.")

        # Admin API key
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()

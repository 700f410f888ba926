from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "sentinel-rollback"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Environment
    ENV: str = "dev"  # dev, staging, production
    DEBUG: bool = False

    # Telemetry simulation
    TICK_INTERVAL_SECONDS: float = 2.0
    SCHEDULER_AUTOSTART: bool = True
    SIMULATION_SEED: Optional[int] = None
    SERVICE_NAME_LABEL: str = "core-api"
    BASELINE_LATENCY_MS: float = 80.0
    METRIC_BUFFER_SIZE: int = 30
    LOG_BUFFER_SIZE: int = 50

    # Auto-analysis trigger
    ANALYSIS_LOG_WINDOW: int = 15
    TRIGGER_WINDOW: int = 3
    TRIGGER_ERROR_THRESHOLD: int = 8
    TRIGGER_LATENCY_THRESHOLD_MS: float = 220.0
    ANALYSIS_TIMEOUT_SECONDS: float = 30.0

    # Rollback
    ROLLBACK_SETTLE_SECONDS: float = 2.0
    AUTO_ROLLBACK_ENABLED: bool = False
    AUTO_ROLLBACK_MIN_CONFIDENCE: float = 0.8

    # Generative backend (empty key = offline heuristic analyzer)
    GENAI_API_KEY: str = ""
    GENAI_MODEL: str = "gemini-2.0-flash"
    GENAI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GENAI_TIMEOUT_SECONDS: float = 20.0

    # Chat assistant
    CHAT_CONTEXT_LOGS: int = 5
    CHAT_FALLBACK_REPLY: str = "Assistant communication error. Please retry."

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )

settings = Settings()

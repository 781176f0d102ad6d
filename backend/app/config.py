from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application Configuration
    APP_ENV: str = "development"
    APP_NAME: str = "MCP Gateway"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = ""          # Optional: custom origin added to CORS allow list

    # MCP protocol
    SERVER_NAME: str = "MCP Gateway Server"
    PROTOCOL_VERSION: str = "2024-11-05"
    # False keeps the single -32603 code for every method failure (wire
    # compatible with existing clients). True reports -32601/-32602/-32002/...
    DISTINCT_ERROR_CODES: bool = False

    # WebSocket sessions
    WS_QUEUE_SIZE: int = 64

    # Upstream model (any OpenAI-compatible endpoint, e.g. Ollama at /v1).
    # Simulation mode answers with canned replies so the service runs offline.
    SIMULATION_MODE: bool = True
    LLM_BASE_URL: str = "http://localhost:11434/v1"
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "qwen3:8b"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 1500
    LLM_MAX_TOOL_ROUNDS: int = 5

    # Chat memory
    CHAT_DEFAULT_HISTORY: int = 10
    CHAT_MAX_HISTORY: int = 50
    CHAT_MEMORY_MAX_MESSAGES: int = 200

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "machinist-quote"
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TEMPERATURE: float = 0.2
    GEMINI_TIMEOUT_SECONDS: float = 60.0

    # Options edits settle for this long before a new quote is requested
    QUOTE_DEBOUNCE_MS: int = 750

    # Uploads
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024  # 50MB

    # Sessions not touched for this long are closed when a new one starts
    SESSION_IDLE_SECONDS: int = 3600

    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = ".env"


settings = Settings()

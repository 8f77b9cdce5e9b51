from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    openai_api_key: str | None = None
    openai_model: str = "gpt-5-mini"
    llm_provider: str = "gemini"
    llm_timeout_seconds: float = 60.0

    whatsapp_token: str | None = None
    whatsapp_phone_id: str | None = None
    whatsapp_api_version: str = "v17.0"
    webhook_verify_token: str = "your_verify_token"

    automation_webhook_url: str | None = None
    automation_timeout_seconds: float = 30.0

    session_ttl_minutes: float = 10.0

    cors_allow_origins: str = "*"
    log_level: str = "INFO"
    dev_endpoints_enabled: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    def cors_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]
        return origins or ["*"]


settings = Settings()

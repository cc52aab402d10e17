from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str | None = None
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_ANALYSIS_TABLE: str = "analyses"
    SUPABASE_PHOTO_ANALYSIS_TABLE: str = "photo_analyses"

    # AI provider settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-1.5-pro"
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_AI_PROVIDER: str = "openai"

    ANALYSIS_MAX_TOKENS: int = 1500
    ANALYSIS_TEMPERATURE: float = 0.7
    PROVIDER_TIMEOUT_SECONDS: float = 60.0

    # =================================================================
    # BROKER SETTINGS - client side analysis requests
    # =================================================================
    ANALYSIS_API_BASE_URL: str = "http://localhost:8000"
    ANALYSIS_API_TIMEOUT_SECONDS: float = 30.0
    ANALYSIS_CACHE_TTL_SECONDS: float = 300.0  # 5 minutes
    BROKER_CACHE_MAX_ENTRIES: int = 50
    SERVER_CACHE_MAX_ENTRIES: int = 100

    DEFAULT_CULTURAL_CONTEXT: str = "western_urban"

    # Optional Redis backing for the credential key-value store
    CREDENTIAL_STORE_REDIS_URL: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str | None:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        if not self.SUPABASE_URL:
            return None
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def configured_providers(self) -> list[str]:
        """Names of AI providers that have credentials configured."""
        providers = []
        if self.OPENAI_API_KEY:
            providers.append("openai")
        if self.GEMINI_API_KEY:
            providers.append("gemini")
        return providers

    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


settings = Settings()

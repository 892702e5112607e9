# config.py
# Environment-driven settings. Import `settings` everywhere instead of os.getenv.

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- OpenAI ---
    # empty key => offline regex parsers + deterministic comparison narrative
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    narrative_timeout_seconds: float = Field(default=20.0, gt=0)
    extraction_timeout_seconds: float = Field(default=60.0, gt=0)

    # --- Storage ---
    data_dir: Optional[Path] = Field(default=None)
    seed_demo_data: bool = Field(default=True)

    # --- Email ---
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_user: str = Field(default="")
    smtp_pass: str = Field(default="")
    email_from: str = Field(default="rfp@procurement.example.com")

    # --- API server ---
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=5000)
    cors_origins: str = Field(default="*")

    # --- Logging ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @field_validator("data_dir", mode="before")
    @classmethod
    def empty_data_dir_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


settings = Settings()

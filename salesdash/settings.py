from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Google Sheets Configuration
    spreadsheet_id: str = Field(default="", alias="SPREADSHEET_ID")
    google_credentials_file: str = Field(
        default="credentials.json", alias="GOOGLE_CREDENTIALS_FILE"
    )
    users_sheet_name: str = Field(default="Users", alias="USERS_SHEET_NAME")
    admin_agent_name: str = Field(default="Admin", alias="ADMIN_AGENT_NAME")

    # Cache Configuration
    sales_cache_ttl_seconds: float = Field(
        default=300, gt=0, alias="SALES_CACHE_TTL_SECONDS"
    )
    users_cache_ttl_seconds: float = Field(
        default=18000, gt=0, alias="USERS_CACHE_TTL_SECONDS"
    )
    cache_debug: bool = Field(default=False, alias="CACHE_DEBUG")

    # Retry / Write Queue Configuration
    retry_max_retries: int = Field(default=3, ge=0, alias="RETRY_MAX_RETRIES")
    retry_base_delay: float = Field(default=1.0, ge=0, alias="RETRY_BASE_DELAY")
    retry_max_delay: float = Field(default=10.0, ge=0, alias="RETRY_MAX_DELAY")
    write_min_delay: float = Field(default=0.1, ge=0, alias="WRITE_MIN_DELAY")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )


global_settings = Settings()

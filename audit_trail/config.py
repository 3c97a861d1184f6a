from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="AUDIT_")

    # Database
    database_url: str = "sqlite+aiosqlite:///./audit_trail.db"

    # Columns left out of except-mode configurations unless listed in `only`
    default_excluded_attributes: list[str] = ["created_at", "updated_at", "lock_version"]

    # App
    debug: bool = False


settings = Settings()

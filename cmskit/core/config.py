from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "cmskit"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    database_url: str = "sqlite:///./cmskit.db"

    admin_app_path: str = "admin"
    auth_guard: str = "twill_users"
    route_name_prefix: str = "twill"
    admin_api_token: str | None = None

    locales: list[str] = ["en"]
    locale: str = "en"
    per_page: int = 20

    modules_file: str | None = None

settings = Settings()

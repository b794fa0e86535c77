from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./little_lemon.db"
    log_level: str = "INFO"

    # Remote menu source
    menu_url: str = (
        "https://raw.githubusercontent.com/Meta-Mobile-Developer-PC/"
        "Working-With-Data-API/main/capstone.json"
    )
    image_base_url: str = (
        "https://raw.githubusercontent.com/Meta-Mobile-Developer-PC/"
        "Working-With-Data-API/main/images"
    )
    http_timeout: float = 10.0

    # Image cache
    image_cache_dir: str = "./cache/images"
    image_cache_retention_days: int = 7
    image_cache_sweep_interval: float = 24 * 60 * 60

    # Observability (empty endpoint disables span export)
    otlp_endpoint: str = ""

    model_config = {"env_file": ".env"}


settings = Settings()

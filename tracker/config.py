from pathlib import Path
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Backend
    backend_url: str = "https://ai-backend-for-token.onrender.com/api"
    request_timeout: float = 10.0
    health_timeout: float = 5.0

    # Session
    token_path: str = "~/.token-tracker/token"

    # Dashboard
    log_level: str = "INFO"
    chart_window: int = 10
    recent_limit: int = 5

    # Loaded from YAML
    yaml_config: dict = {}
    settings_yaml: str = str(Path(__file__).parent.parent / "config" / "settings.yaml")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        yaml_path = Path(self.settings_yaml)
        if yaml_path.exists():
            with open(yaml_path, "r", encoding="utf-8") as f:
                self.yaml_config = yaml.safe_load(f) or {}

    @property
    def models_config(self) -> list[dict]:
        return self.yaml_config.get("models", {}).get("available", [])

    @property
    def default_model(self) -> str:
        return self.yaml_config.get("models", {}).get("default", "gpt-3.5-turbo")

    @property
    def resolved_token_path(self) -> Path:
        return Path(self.token_path).expanduser()


@lru_cache
def get_settings() -> Settings:
    return Settings()

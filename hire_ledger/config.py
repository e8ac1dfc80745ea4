from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # .env 里会出现的字段
    secret_key: str
    access_token_expire_minutes: int = 60 * 24 * 7

    database_url: str = "sqlite:///./hire_ledger.db"

    image_dir: str = "./images"
    max_image_bytes: int = 5 * 1024 * 1024

    log_level: str = "INFO"

    # 库里一个用户都没有时，启动阶段自动建第一个 admin
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_name: str = "Administrator"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()

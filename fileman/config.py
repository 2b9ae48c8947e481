from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'File Manager'
    app_host: str = '0.0.0.0'
    port: int = Field(default=8080, ge=1, le=65535)
    files_root_dir: str = '.'
    check_owner: bool = True
    max_upload_bytes: int = Field(default=32 * 1024 * 1024, ge=1)
    log_level: str = 'info'
    cors_origins: str = ''
    static_dir: str = 'static'


settings = Settings()

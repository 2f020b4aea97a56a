import sys

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    rule_file: str = "data/rules.json"
    ledger_file: str = "data/ledger.json"

    default_statement_day: int = 1
    default_points_currency: str = "points"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="REWARDCAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function} - {message}",
    )

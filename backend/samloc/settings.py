from __future__ import annotations

import hashlib
import logging
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings

from models import RoomConfig

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = ["http://localhost:5173"]


def parse_origins(raw: str) -> List[str]:
    """Split a comma-separated ORIGIN value, dropping blanks."""
    return [x.strip() for x in raw.split(",") if x.strip()]


class Settings(BaseSettings):
    secret_key: str = Field(default="CHANGE_ME", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    origin: str = Field(default="", alias="ORIGIN")
    max_players: int = Field(default=5, ge=2, le=5, alias="MAX_PLAYERS")
    declare_seconds: int = Field(default=15, ge=1, le=60, alias="DECLARE_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_origins(self) -> List[str]:
        return DEFAULT_ORIGINS + parse_origins(self.origin)

    def room_config(self) -> RoomConfig:
        return RoomConfig(max_players=self.max_players, declare_seconds=self.declare_seconds)

    def masked_secret(self) -> str:
        if not self.secret_key:
            return "<empty>"
        if len(self.secret_key) <= 4:
            return "***"
        return f"{self.secret_key[:2]}***{self.secret_key[-2:]}"

    def log_status(self) -> None:
        secret_hash = hashlib.sha256(self.secret_key.encode()).hexdigest()[:8]
        logger.info(
            "Settings: secret_key=%s (hash=%s), max_players=%s, declare_seconds=%s, origins=%s",
            self.masked_secret(),
            secret_hash,
            self.max_players,
            self.declare_seconds,
            self.allowed_origins,
        )


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    settings.log_status()
    return settings


settings = get_settings()

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_env: str
    log_level: str
    readwise_token: str
    readwise_batch_size: int
    readwise_source_type: str

    @staticmethod
    def from_env() -> "Settings":
        def _s(name: str, default: str) -> str:
            return os.getenv(name, default).strip()

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        return Settings(
            app_env=_s("APP_ENV", "dev"),
            log_level=_s("LOG_LEVEL", "INFO").upper(),
            readwise_token=_s("READWISE_TOKEN", ""),
            readwise_batch_size=_i("READWISE_BATCH_SIZE", "100"),
            readwise_source_type=_s("READWISE_SOURCE_TYPE", "gospel_library"),
        )


def configure_logging(settings: Settings) -> None:
    """Install a basic stderr handler at the configured level."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

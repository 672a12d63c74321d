from __future__ import annotations
import logging
import os
from typing import Mapping, Optional
from pydantic import BaseModel, Field, field_validator
from storage import data_path, load_json


CONFIG_FILE = "config.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# env var -> Settings field
ENV_OVERRIDES = {
    "STUDIUM_BACKEND_API_URL": "api_base_url",
    "STUDIUM_API_TIMEOUT": "api_timeout",
    "STUDIUM_LOG_LEVEL": "log_level",
    "STUDIUM_STUDY_START_HOUR": "study_start_hour",
    "STUDIUM_TIMEZONE": "timezone",
}


class Settings(BaseModel):
    api_base_url: str = "http://localhost:3333/api"
    api_timeout: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"
    study_start_hour: int = Field(default=18, ge=0, le=23)
    timezone: str = "America/Sao_Paulo"
    max_parallel_requests: int = Field(default=8, ge=1, le=32)

    @field_validator("api_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Defaults, then config.json in the data directory, then environment.
    """
    env = os.environ if env is None else env
    raw = load_json(data_path(CONFIG_FILE), {})
    values = dict(raw) if isinstance(raw, dict) else {}
    for var, field_name in ENV_OVERRIDES.items():
        if env.get(var):
            values[field_name] = env[var]
    return Settings.model_validate(values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

"""Runtime settings, read from the environment (and .env via python-dotenv).

Credentials are only ever supplied this way; nothing secret lives in source.

    GENRPG_PROVIDER_URL     text backend base URL
    GENRPG_API_KEY          bearer token for text and image backends
    GENRPG_PROVIDER_FORMAT  koboldcpp | openai | openai-chat
    GENRPG_MODEL            text model name
    GENRPG_IMAGE_URL        image backend base URL; empty disables pictures
    GENRPG_IMAGE_MODEL      image model name
    GENRPG_TIMEOUT          request timeout in seconds
    GENRPG_PLAYER_NAME      name of a freshly created character
    GENRPG_LOG_LEVEL        logging level for the launcher
    DATA_DIR                where the save file lives
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ValidationError

from genrpg.llm import ProviderFormat

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

_ENV_FIELDS: dict[str, str] = {
    "GENRPG_PROVIDER_URL": "provider_url",
    "GENRPG_API_KEY": "api_key",
    "GENRPG_PROVIDER_FORMAT": "provider_format",
    "GENRPG_MODEL": "model",
    "GENRPG_IMAGE_URL": "image_url",
    "GENRPG_IMAGE_MODEL": "image_model",
    "GENRPG_TIMEOUT": "timeout",
    "GENRPG_PLAYER_NAME": "player_name",
    "GENRPG_LOG_LEVEL": "log_level",
    "DATA_DIR": "data_dir",
}


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


class Settings(BaseModel):
    provider_url: str = "https://api.venice.ai/api"
    api_key: str = ""
    provider_format: ProviderFormat = "openai-chat"
    model: str = "mistral-31-24b"
    image_url: str = ""
    image_model: str = "fluently-xl"
    timeout: float = 30.0
    player_name: str = "Hero"
    log_level: str = "INFO"
    data_dir: Path = DEFAULT_DATA_DIR

    @property
    def save_path(self) -> Path:
        return self.data_dir / "game-state.json"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from env (defaults to os.environ); unset keys use defaults."""
    source = os.environ if env is None else env
    values = {field: source[var] for var, field in _ENV_FIELDS.items() if source.get(var)}
    try:
        return Settings(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0])
        var = next(v for v, f in _ENV_FIELDS.items() if f == field)
        raise ConfigError(f"{var}: {error['msg']}") from e

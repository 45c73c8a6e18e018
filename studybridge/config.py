from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping

from dotenv import load_dotenv

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for 3.10
    import tomli as tomllib


DEFAULT_TIMEOUTS: Dict[str, int] = {
    "default": 15,
    "open_library": 10,
    "google_books": 10,
    "big_book_api": 10,
    "openai": 60,
    "deepseek": 60,
}

DEFAULT_CONFIG_PATH = Path("config.toml")
DEFAULT_SEARCH_LIMIT = 20

PRIMARY_MODEL = "gpt-4o-mini"
SECONDARY_MODEL = "deepseek-chat"
SECONDARY_BASE_URL = "https://api.deepseek.com"

OPENAI_KEY_ENV = "OPENAI_API_KEY"
DEEPSEEK_KEY_ENV = "DEEPSEEK_API_KEY"
BIGBOOK_KEY_ENV = "BIGBOOK_API_KEY"


@dataclass(frozen=True)
class Credentials:
    openai_api_key: str | None = None
    deepseek_api_key: str | None = None
    big_book_api_key: str | None = None


@dataclass(frozen=True)
class GenerationSettings:
    primary_model: str = PRIMARY_MODEL
    secondary_model: str = SECONDARY_MODEL
    secondary_base_url: str = SECONDARY_BASE_URL
    temperature: float = 0.3
    max_tokens: int = 2048


@dataclass(frozen=True)
class Settings:
    timeouts: Dict[str, int]
    credentials: Credentials
    default_limit: int = DEFAULT_SEARCH_LIMIT
    generation: GenerationSettings = GenerationSettings()


def load_settings(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    load_dotenv()
    environ = os.environ if env is None else env

    path = config_path or DEFAULT_CONFIG_PATH
    data: dict = {}
    if path.exists():
        data = tomllib.loads(path.read_text())

    timeouts = DEFAULT_TIMEOUTS.copy()
    configured = data.get("timeouts", {})
    for key, value in configured.items():
        try:
            timeouts[str(key)] = int(value)
        except (TypeError, ValueError):
            continue

    search = data.get("search", {})
    default_limit = _non_negative_int(search.get("default_limit"), DEFAULT_SEARCH_LIMIT)

    return Settings(
        timeouts=timeouts,
        credentials=load_credentials(environ),
        default_limit=default_limit,
        generation=_load_generation(data.get("generation", {})),
    )


def load_credentials(environ: Mapping[str, str]) -> Credentials:
    return Credentials(
        openai_api_key=_env_value(environ, OPENAI_KEY_ENV),
        deepseek_api_key=_env_value(environ, DEEPSEEK_KEY_ENV),
        big_book_api_key=_env_value(environ, BIGBOOK_KEY_ENV),
    )


def timeout_for(provider: str, settings: Settings) -> int:
    return settings.timeouts.get(provider, settings.timeouts["default"])


def _load_generation(raw: dict) -> GenerationSettings:
    defaults = GenerationSettings()
    temperature = defaults.temperature
    try:
        if raw.get("temperature") is not None:
            temperature = float(raw["temperature"])
    except (TypeError, ValueError):
        pass
    return GenerationSettings(
        primary_model=str(raw.get("primary_model") or defaults.primary_model),
        secondary_model=str(raw.get("secondary_model") or defaults.secondary_model),
        secondary_base_url=str(raw.get("secondary_base_url") or defaults.secondary_base_url),
        temperature=temperature,
        max_tokens=_non_negative_int(raw.get("max_tokens"), defaults.max_tokens) or defaults.max_tokens,
    )


def _env_value(environ: Mapping[str, str], name: str) -> str | None:
    value = (environ.get(name) or "").strip()
    return value or None


def _non_negative_int(value: object, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default

import os
import re
from pathlib import Path
from typing import Any, Callable, Literal

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

# Pattern to match $VAR_NAME environment variable references
ENV_VAR_PATTERN = re.compile(r"\$([A-Z_][A-Z0-9_]*)")

CONFIG_SECTION = "finalresponder"


def interpolate_env_vars(value):
    """Recursively replace $VAR_NAME with os.environ values."""
    if isinstance(value, str):

        def replace(match):
            var = match.group(1)
            val = os.environ.get(var)
            if val is None:
                raise ValueError(f"Environment variable ${var} not set")
            return val

        return ENV_VAR_PATTERN.sub(replace, value)
    elif isinstance(value, dict):
        return {k: interpolate_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [interpolate_env_vars(item) for item in value]
    return value


class ResponderConfig(BaseSettings):
    """Options for the final responder.

    ``env`` falls back to ``$FINALRESPONDER_ENV`` (or a ``.env`` file)
    and then to ``"development"``. Anything other than ``"production"``
    shows error details to the client.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINALRESPONDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "development"
    onerror: Callable[..., Any] | None = None
    content_type_negotiation: bool = False
    default_content_type: Literal["text/html", "text/plain"] = "text/html"

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def load_app_config(config_path: Path) -> dict:
    """Load and parse a YAML config file with environment variable interpolation."""
    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    return interpolate_env_vars(config)


def load_config(config_path: Path | None = None, **overrides: Any) -> ResponderConfig:
    """Build a ResponderConfig from the environment and app.yaml.

    Values in the ``finalresponder`` section of app.yaml override the
    environment; keyword overrides (e.g. ``onerror``) win over both.
    """
    config_path = config_path or Path.cwd() / "app.yaml"

    updates: dict[str, Any] = {}
    if config_path.exists():
        section = load_app_config(config_path).get(CONFIG_SECTION) or {}
        updates.update(section)
    updates.update(overrides)

    return ResponderConfig(**updates)

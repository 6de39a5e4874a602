"""Settings for the CLI and the HTTP service.

Precedence, highest first:

1. explicit CLI option / API argument
2. environment (``CASEGEN_RECIPE``, ``CASEGEN_YEAR_END``,
   ``CASEGEN_OUTPUT_DIR``, ``CASEGEN_LOG_LEVEL``), including a ``.env``
   found by walking upward from the working directory
3. ``[tool.casegen]`` in ``pyproject.toml`` in the working directory
4. built-in defaults
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from dotenv import find_dotenv, load_dotenv

from .context import DEFAULT_YEAR_END
from .profiles import DEFAULT_PROFILE, get_profile

log = logging.getLogger(__name__)

ENV_PREFIX = "CASEGEN_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigError(ValueError):
    """Unreadable or invalid configuration."""


@dataclass(frozen=True)
class Settings:
    recipe: str = DEFAULT_PROFILE.recipe_id
    year_end: str = DEFAULT_YEAR_END
    output_dir: Path = Path("cases")
    log_level: str = "INFO"

    def merged(self, values: Mapping[str, Any]) -> "Settings":
        """Copy with every non-None entry of ``values`` applied."""
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in values.items() if k in known and v is not None}
        if "output_dir" in updates:
            updates["output_dir"] = Path(updates["output_dir"])
        if "log_level" in updates:
            updates["log_level"] = str(updates["log_level"]).upper()
        return replace(self, **updates)

    def validate(self) -> "Settings":
        try:
            get_profile(self.recipe)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"Invalid log level {self.log_level!r}. Expected one of: {', '.join(LOG_LEVELS)}"
            )
        return self


def load_env_file() -> Path | None:
    """Load the nearest ``.env`` (walking up from the CWD); returns its path."""
    found = find_dotenv(usecwd=True)
    if not found:
        return None
    load_dotenv(found)
    return Path(found)


def read_pyproject(directory: Path | None = None) -> dict[str, Any]:
    """The ``[tool.casegen]`` table, or ``{}`` when absent."""
    path = (directory or Path.cwd()) / "pyproject.toml"
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text())
    except OSError as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    table = data.get("tool", {}).get("casegen", {})
    if not isinstance(table, dict):
        raise ConfigError(f"[tool.casegen] in {path} must be a table")
    return {k.replace("-", "_"): v for k, v in table.items()}


def read_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    env = os.environ if environ is None else environ
    out = {}
    for f in fields(Settings):
        value = env.get(ENV_PREFIX + f.name.upper())
        if value:
            out[f.name] = value
    return out


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    *,
    directory: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings from defaults, pyproject, environment and overrides."""
    settings = (
        Settings()
        .merged(read_pyproject(directory))
        .merged(read_env(environ))
        .merged(overrides or {})
    )
    log.debug("Settings: %s", settings)
    return settings.validate()

"""
Configuration management for llama-agent.

This module centralizes loading of the assistant's settings.  Settings
come from an optional JSON file in the user's home directory
(`~/.llama-agent.json`) overlaid on hardcoded defaults.  Any field missing
from the file keeps its default, so a file containing only
``{"model": "codellama:7b"}`` is perfectly valid.

The resulting `Settings` object is immutable and is passed explicitly to
every component; nothing below the CLI reads the environment or the home
directory on its own.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_FILE = ".llama-agent.json"

# Settings that only make sense above zero
POSITIVE_SETTINGS = frozenset({"timeout_seconds", "max_context_files"})


def default_config_path() -> Path:
    """Return the fixed location of the settings file."""
    return Path.home() / CONFIG_FILE


@dataclass(frozen=True)
class Settings:
    """Top-level configuration for a single invocation.

    Attributes
    ----------
    model: str
        Model identifier handed to the inference program
        (``<inference_command> run <model>``).

    temperature: float
        Sampling temperature.  `ollama run` accepts no sampling flags, so
        this value is reported by the `config` command and logged only.

    max_tokens: int
        Expected upper bound on the generated response.  Reported by the
        `config` command and logged next to the prompt token estimate.

    context_lines: int
        Number of lines shown around an anchor line in `explain` mode.

    project_root: str
        Directory scanned for context files.  Empty means the current
        working directory at invocation time.

    enable_logging: bool
        When true, the CLI logs at INFO level instead of WARNING.

    timeout_seconds: float
        Hard wall-clock limit for the inference subprocess.  Must be
        positive; fractions of a second are allowed.

    inference_command: str
        Executable of the local inference program.

    max_context_files: int
        Maximum number of files embedded in the context blob.  Must be
        positive.
    """

    model: str = "starcoder2:latest"
    temperature: float = 0.3
    max_tokens: int = 500
    context_lines: int = 50
    project_root: str = ""
    enable_logging: bool = False
    timeout_seconds: float = 30.0
    inference_command: str = "ollama"
    max_context_files: int = 20

    def resolved_root(self) -> Path:
        """Return the project root, defaulting to the current directory."""
        if self.project_root:
            return Path(self.project_root).expanduser()
        return Path.cwd()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["project_root"] = str(self.resolved_root())
        return data

    @staticmethod
    def from_mapping(data: Dict[str, Any]) -> "Settings":
        """Overlay `data` on the defaults.

        Values are coerced to the type of the corresponding default.  Keys
        that are unknown, values that cannot be coerced without loss, and
        non-positive values for `POSITIVE_SETTINGS` are logged and ignored.
        """
        defaults = Settings()
        known = {f.name for f in fields(Settings)}
        overrides: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown setting %r", key)
                continue
            try:
                coerced = _coerce(value, getattr(defaults, key))
                if key in POSITIVE_SETTINGS and coerced <= 0:
                    raise ValueError(value)
                overrides[key] = coerced
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid value %r for setting %r", value, key)
        return replace(defaults, **overrides)

    @staticmethod
    def load(path: Optional[Path] = None) -> "Settings":
        """Load settings from `path` (default `~/.llama-agent.json`).

        A missing file yields the defaults.  A file that cannot be read or
        parsed, or whose top level is not a JSON object, also yields the
        defaults and logs a warning.
        """
        config_path = path if path is not None else default_config_path()
        if not config_path.exists():
            logger.debug("No settings file at %s; using defaults", config_path)
            return Settings()
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to parse %s: %s", config_path, exc)
            return Settings()
        if not isinstance(data, dict):
            logger.warning("Settings file %s does not contain a JSON object; using defaults", config_path)
            return Settings()
        logger.debug("Loaded settings from %s", config_path)
        return Settings.from_mapping(data)


def _coerce(value: Any, default: Any) -> Any:
    # bool must be checked before int: bool is a subclass of int
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
            return value.strip().lower() in ("true", "1", "yes")
        raise ValueError(value)
    if isinstance(default, int):
        if isinstance(value, bool):
            raise TypeError(value)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(value)
            return int(value)
        return int(value)
    if isinstance(default, float):
        if isinstance(value, bool):
            raise TypeError(value)
        result = float(value)
        if not math.isfinite(result):
            raise ValueError(value)
        return result
    if value is None:
        raise TypeError(value)
    return str(value)

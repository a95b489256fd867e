"""Orchestrator configuration.

Values are layered: built-in defaults, then an optional YAML file, then
environment overrides. Everything the core needs (ports, timeouts, retry
budgets, command templates) lives on :class:`OrchestratorConfig` so tests
can build one directly without touching the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional

import yaml

from ebo.errors import ConfigError

DEFAULT_BASE_PORT = 8081
DEFAULT_READY_MARKERS = ["[webpack.Progress] 100%", "compiled successfully"]
DEFAULT_ERROR_KEYWORDS = ["Error", "failed", "exception"]
DEFAULT_START_COMMAND = "npx lerna exec --stream --scope {component} -- PORT={port} pnpm run start"
DEFAULT_PROJECTS = ["chromium", "firefox", "webkit"]
MERGED_RESULTS_FILE = "final_results.json"

_FALSE_VALUES = {"", "0", "false", "no", "off"}


def _env_flag(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() not in _FALSE_VALUES


@dataclass
class OrchestratorConfig:
    """Tunable knobs for one orchestrator run."""

    components_dir: str = "components"
    results_dir: str = "."
    merged_file: str = MERGED_RESULTS_FILE
    base_port: int = DEFAULT_BASE_PORT
    ci: bool = False

    # Service launcher
    start_command: str = DEFAULT_START_COMMAND
    startup_timeout_s: float = 90.0
    ready_markers: list[str] = field(default_factory=lambda: list(DEFAULT_READY_MARKERS))
    error_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_ERROR_KEYWORDS))

    # Readiness prober
    probe_attempts: int = 30
    probe_delay_s: float = 1.0
    probe_request_timeout_s: float = 2.0

    # Port reclaimer
    release_attempts: int = 10
    release_interval_s: float = 1.0
    cooldown_s: float = 5.0

    # Test executor
    projects: list[str] = field(default_factory=lambda: list(DEFAULT_PROJECTS))
    workers: int = 3
    output_dir: str = "test-results"

    lock_file: str = field(
        default_factory=lambda: os.path.join(os.environ.get("EBO_RUN_DIR", "/tmp"), "ebo-run.lock")
    )


def _coerce(name: str, current: Any, value: Any) -> Any:
    """Coerce a YAML/env value to the type of the field's default."""
    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        return _env_flag(str(value))
    if isinstance(current, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if isinstance(current, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{name} must be a number, got {value!r}") from None
    if isinstance(current, list):
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            raise ConfigError(f"{name} must be a list, got {value!r}")
        return [str(v) for v in value]
    return str(value)


def apply_overrides(config: OrchestratorConfig, overrides: Mapping[str, Any]) -> OrchestratorConfig:
    """Return a copy of *config* with *overrides* applied.

    Raises:
        ConfigError: On unknown keys or values that cannot be coerced.
    """
    known = {f.name for f in fields(config)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
    changes = {k: _coerce(k, getattr(config, k), v) for k, v in overrides.items()}
    return replace(config, **changes)


def load_config_file(path: str) -> dict[str, Any]:
    """Read a YAML configuration file into a mapping."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file (expected mapping): {path}")
    return data


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Extract configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}
    if "CI" in env:
        overrides["ci"] = _env_flag(env["CI"])
    if env.get("EBO_COMPONENTS_DIR"):
        overrides["components_dir"] = env["EBO_COMPONENTS_DIR"]
    if env.get("EBO_RESULTS_DIR"):
        overrides["results_dir"] = env["EBO_RESULTS_DIR"]
    if env.get("EBO_BASE_PORT"):
        overrides["base_port"] = env["EBO_BASE_PORT"]
    if env.get("EBO_START_COMMAND"):
        overrides["start_command"] = env["EBO_START_COMMAND"]
    return overrides


def load_config(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> OrchestratorConfig:
    """Build the effective configuration.

    Priority (highest last):
    1. Built-in defaults
    2. YAML file at *path*, or ``$EBO_CONFIG`` when *path* is None
    3. Environment overrides (``CI``, ``EBO_*``)
    """
    if env is None:
        env = os.environ
    config = OrchestratorConfig()

    path = path or env.get("EBO_CONFIG")
    if path:
        config = apply_overrides(config, load_config_file(path))

    return apply_overrides(config, env_overrides(env))


def batch_number_from_env(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return ``BATCH_NUMBER`` when ``IS_BATCH=BATCH`` selects single-batch mode."""
    if env is None:
        env = os.environ
    if env.get("IS_BATCH") == "BATCH":
        return env.get("BATCH_NUMBER", "")
    return None

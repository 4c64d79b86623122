"""logid configuration management.

Handles:
- .env file discovery and loading with precedence: CLI > .env > env vars
- Session credential keys (CAS_SESSION_<REGION>, CAS_SESSION)
- ENABLE_LOGGING, request timeout and filter rules location
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from logid.diagnostics import is_truthy
from logid.errors import ConfigError

ENV_FILE_NAME = ".env"
USER_CONFIG_DIR = Path(".config") / "logid"

TIMEOUT_ENV_VAR = "LOGID_TIMEOUT_SECONDS"
# Total deadline for each network call (auth exchange, log query).
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class Config:
    """logid runtime configuration."""

    env: dict[str, str] = field(default_factory=dict)
    enable_logging: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    filter_rules_path: Path | None = None
    env_file_path: Path | None = None

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.env.get(key, default)


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Parse a .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - KEY='single quoted'
    - export KEY=value
    - # comments
    - Empty lines
    """
    result: dict[str, str] = {}

    if not env_file.exists():
        return result

    for line in env_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:]

        # Skip lines without =
        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()

        # Remove quotes
        if (value.startswith('"') and value.endswith('"')) or (
            value.startswith("'") and value.endswith("'")
        ):
            value = value[1:-1]

        result[key] = value

    return result


def _find_env_file(start: Path | None = None) -> Path | None:
    """Find .env file by walking up directory tree.

    Stops at git root, home directory, or filesystem root.
    Returns None if not found.
    """
    current = (start or Path.cwd()).resolve()

    try:
        home = Path.home()
    except RuntimeError:
        home = None

    for _ in range(20):  # Max depth
        env_file = current / ENV_FILE_NAME
        if env_file.exists():
            return env_file

        if home and current == home:
            break
        if current == current.parent:
            break

        # Stop at git root (but check .env first)
        if (current / ".git").exists():
            break

        current = current.parent

    return None


def user_env_file() -> Path | None:
    """Return ~/.config/logid/.env (whether or not it exists)."""
    try:
        return Path.home() / USER_CONFIG_DIR / ENV_FILE_NAME
    except RuntimeError:
        return None


def env_search_locations(start: Path | None = None) -> list[Path]:
    """Locations checked for a .env file, in order (for user hints)."""
    locations = [(start or Path.cwd()).resolve() / ENV_FILE_NAME]
    user_file = user_env_file()
    if user_file is not None:
        locations.append(user_file)
    return locations


def discover_env_file(start: Path | None = None) -> Path | None:
    """Project .env (walking up) first, then the user-level one."""
    found = _find_env_file(start)
    if found is not None:
        return found
    user_file = user_env_file()
    if user_file is not None and user_file.exists():
        return user_file
    return None


def _parse_timeout(raw: str | float | None, source: str = TIMEOUT_ENV_VAR) -> float:
    """Parse a timeout in seconds; None or empty means the default.

    Raises:
        ConfigError: If the value is not a finite positive number
    """
    if raw is None or raw == "":
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{source} must be a number, got {raw!r}") from e
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{source} must be a positive number of seconds, got {raw!r}")
    return value


def load_config(
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration with precedence: CLI > .env > env vars.

    Args:
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: CLI-provided overrides (enable_logging, timeout_seconds,
            filter_rules_path)
        environ: Base environment (defaults to os.environ)

    Returns:
        Loaded Config instance

    Raises:
        ConfigError: If the timeout (CLI or LOGID_TIMEOUT_SECONDS) is invalid
    """
    cli_overrides = cli_overrides or {}

    # Step 1: Load environment variables as base
    env_vars = dict(os.environ if environ is None else environ)

    # Step 2: Load .env file and merge (overrides env vars)
    env_file_path: Path | None = Path(env_file) if env_file else discover_env_file()
    if env_file_path is not None and env_file_path.exists():
        file_vars = parse_env_file(env_file_path)
        # Empty values in the file do not clobber the environment
        env_vars.update({k: v for k, v in file_vars.items() if v})
    else:
        env_file_path = None

    # Step 3: Resolve individual settings, CLI first
    enable_logging = cli_overrides.get("enable_logging")
    if enable_logging is None:
        enable_logging = is_truthy(env_vars.get("ENABLE_LOGGING"))

    if cli_overrides.get("timeout_seconds") is not None:
        timeout = _parse_timeout(cli_overrides["timeout_seconds"], "--timeout")
    else:
        timeout = _parse_timeout(env_vars.get(TIMEOUT_ENV_VAR))

    rules_path = cli_overrides.get("filter_rules_path") or env_vars.get("LOGID_FILTER_RULES")

    return Config(
        env=env_vars,
        enable_logging=bool(enable_logging),
        timeout_seconds=float(timeout),
        filter_rules_path=Path(rules_path).expanduser() if rules_path else None,
        env_file_path=env_file_path,
    )

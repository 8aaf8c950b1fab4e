"""Environment-variable configuration loader.

Every setting is read from a ``SEAWATCH_*`` variable. Numeric settings are
clamped into their allowed range; a non-numeric value falls back to the
default. An unknown log level is a hard error.
"""

from __future__ import annotations

import os

from seawatch.models.config import (
    ApiConfig,
    LogConfig,
    McpConfig,
    OllamaConfig,
    SeaWatchConfig,
    SimulatorConfig,
    StoreConfig,
)

_PREFIX = "SEAWATCH_"
_VALID_LOG_LEVELS = frozenset({"debug", "info", "warning", "error"})
_TRUTHY = frozenset({"true", "1", "yes"})


def _env(name: str, default: str) -> str:
    value = os.environ.get(_PREFIX + name, "").strip()
    return value or default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(_PREFIX + name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


def _env_int(name: str, default: int, lo: int, hi: int) -> int:
    raw = os.environ.get(_PREFIX + name, "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    return max(lo, min(hi, value))


def _parse_log_level(raw: str) -> str:
    level = raw.lower()
    if level not in _VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level {raw!r}; expected one of {sorted(_VALID_LOG_LEVELS)}")
    return level


def _parse_vessels(raw: str) -> tuple[str, ...]:
    vessels = tuple(part.strip() for part in raw.split(",") if part.strip())
    return vessels or SimulatorConfig().vessels


def load_config() -> SeaWatchConfig:
    """Build a :class:`SeaWatchConfig` from the current environment."""
    defaults_ollama = OllamaConfig()
    defaults_sim = SimulatorConfig()

    return SeaWatchConfig(
        store=StoreConfig(db_path=_env("DB_PATH", StoreConfig().db_path)),
        ollama=OllamaConfig(
            endpoint=_env("OLLAMA_ENDPOINT", defaults_ollama.endpoint).rstrip("/"),
            model=_env("OLLAMA_MODEL", defaults_ollama.model),
            timeout_seconds=_env_int("OLLAMA_TIMEOUT", defaults_ollama.timeout_seconds, 5, 300),
        ),
        api=ApiConfig(
            host=_env("API_HOST", ApiConfig().host),
            port=_env_int("API_PORT", ApiConfig().port, 1024, 65535),
        ),
        log=LogConfig(level=_parse_log_level(_env("LOG_LEVEL", LogConfig().level))),
        mcp=McpConfig(stdio_enabled=_env_bool("MCP_STDIO_ENABLED", McpConfig().stdio_enabled)),
        simulator=SimulatorConfig(
            vessels=_parse_vessels(_env("SIM_VESSELS", ",".join(defaults_sim.vessels))),
            interval_seconds=_env_int("SIM_INTERVAL", defaults_sim.interval_seconds, 1, 3600),
            agent_url=_env("SIM_AGENT_URL", defaults_sim.agent_url).rstrip("/"),
        ),
    )

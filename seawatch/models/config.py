"""Configuration dataclasses. Populated by :func:`seawatch.config.load_config`."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StoreConfig:
    db_path: str = "seawatch.db"


@dataclass(frozen=True)
class OllamaConfig:
    endpoint: str = "http://localhost:11434"
    model: str = "llama3:8b"
    timeout_seconds: int = 60


@dataclass(frozen=True)
class ApiConfig:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"


@dataclass(frozen=True)
class McpConfig:
    stdio_enabled: bool = False


@dataclass(frozen=True)
class SimulatorConfig:
    vessels: tuple[str, ...] = ("vessel_001", "vessel_002")
    interval_seconds: int = 5
    agent_url: str = "http://localhost:8000"


@dataclass(frozen=True)
class SeaWatchConfig:
    store: StoreConfig = field(default_factory=StoreConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log: LogConfig = field(default_factory=LogConfig)
    mcp: McpConfig = field(default_factory=McpConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)

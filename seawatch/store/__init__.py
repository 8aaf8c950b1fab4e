from seawatch.store.sqlite_store import TelemetryStore

__all__ = ["TelemetryStore"]

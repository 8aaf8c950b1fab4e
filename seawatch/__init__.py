"""SeaWatch - vessel telemetry event analysis."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("seawatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

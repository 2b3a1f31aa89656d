"""dcexport: Discord guild Prometheus exporter."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dcexport")
except PackageNotFoundError:
    __version__ = "0.0.0"

"""XRef - static analysis and lint engine for PHP sources."""

try:
    from importlib.metadata import version

    __version__ = version("xref")
except Exception:
    __version__ = "0.0.0.dev0+local"  # Fallback for development

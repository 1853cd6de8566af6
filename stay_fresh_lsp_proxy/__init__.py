"""Stay-fresh LSP proxy package."""

from importlib import metadata

__all__ = ["__version__"]

try:
    __version__ = metadata.version("stay-fresh-lsp-proxy")
except metadata.PackageNotFoundError:  # pragma: no cover - during local dev
    __version__ = "0.0.0"

"""Signed bundle submission to Flashbots-compatible relays."""

from importlib import metadata


def __getattr__(name: str) -> str:
    """Expose the package version via ``flashbot.__version__``."""
    if name == "__version__":
        try:
            return metadata.version("flashbot-relay")
        except metadata.PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)


__all__ = ["__version__"]

"""Photo + sticker composition stage built on PyQt6."""

from overlay_stage.version import __version__  # noqa: F401

__all__ = ["__version__"]

"""Built-in dataset loaders; importing this package registers them."""

from . import glyphs, signs  # noqa: F401

__all__ = ["glyphs", "signs"]

"""Publish ebook source repositories to a web document root."""

__version__ = "0.1.0"

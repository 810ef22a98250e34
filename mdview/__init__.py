"""mdview: keyboard-driven viewer for local Markdown and HTML files."""

__version__ = "1.0.0"

"""Exception types raised by mdview."""

from __future__ import annotations

from pathlib import Path


class MdViewError(Exception):
    """Base class for every error mdview raises on purpose."""


class RenderError(MdViewError):
    """A document could not be turned into displayable HTML."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path.name}: {message}")
        self.path = path
        self.message = message


class ReadError(RenderError):
    """Source file is missing, unreadable or not valid UTF-8."""


class ConversionError(RenderError):
    """External converter failed or produced unreadable output."""

    def __init__(self, path: Path, message: str, exit_code: int | None = None, stderr: str = ""):
        super().__init__(path, message)
        self.exit_code = exit_code
        self.stderr = stderr


class WriteError(MdViewError):
    """Export destination could not be written."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Could not write {path}: {reason}")
        self.path = path
        self.reason = reason

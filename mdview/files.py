"""Expand command-line masks into the ordered list of viewable documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from mdview.matching import matches

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".html", ".htm", ".md", ".markdown")
HTML_EXTENSIONS = (".html", ".htm")
MARKDOWN_EXTENSIONS = (".md", ".markdown")


def file_extension(name: str) -> str:
    """Lowercased text after the last dot, with the dot; empty when there is none."""
    if "." not in name:
        return ""
    return "." + name.rsplit(".", 1)[1].lower()


def is_viewable(path: Path) -> bool:
    return file_extension(path.name) in ALLOWED_EXTENSIONS


@dataclass(frozen=True)
class Mask:
    """One glob from the command line, split into directory and base pattern."""

    raw: str
    directory: Path
    pattern: str

    @classmethod
    def parse(cls, raw: str, cwd: Path | None = None) -> "Mask":
        base = Path(cwd) if cwd is not None else Path.cwd()
        candidate = Path(raw).expanduser()
        if not candidate.is_absolute():
            candidate = base / candidate
        return cls(raw=raw, directory=candidate.parent.resolve(), pattern=candidate.name)

    def expand(self) -> list[Path]:
        """Matching entries directly inside the mask's directory (non-recursive)."""
        try:
            entries = list(self.directory.iterdir())
        except OSError as exc:
            # Unlistable directories contribute nothing.
            logger.debug("Cannot list %s for mask %r: %s", self.directory, self.raw, exc)
            return []

        found: list[Path] = []
        for entry in entries:
            if file_extension(entry.name) not in ALLOWED_EXTENSIONS:
                continue
            if not matches(entry.name, self.pattern):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            found.append(self.directory / entry.name)
        return found


def expand_masks(masks: Iterable[str], cwd: Path | None = None) -> list[Path]:
    """Resolve masks to absolute paths, sorted descending by full path.

    Overlapping masks are not de-duplicated.
    """
    files: list[Path] = []
    for raw in masks:
        mask = Mask.parse(raw, cwd)
        matched = mask.expand()
        logger.debug("Mask %r matched %d file(s) in %s", raw, len(matched), mask.directory)
        files.extend(matched)
    return sorted(files, key=str, reverse=True)


def sort_picked(paths: Iterable[str | Path]) -> list[Path]:
    """Order files chosen in the open dialog ascending, dropping unsupported types."""
    picked = [Path(p).expanduser().resolve() for p in paths]
    return sorted((p for p in picked if is_viewable(p)), key=str)

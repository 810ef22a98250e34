"""Command-line entry point: batch rendering or the interactive viewer."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from mdview import __version__
from mdview.errors import RenderError
from mdview.files import expand_masks, sort_picked
from mdview.renderer import DocumentRenderer, ThemeSource, find_converter

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV_VAR = "MDVIEW_LOG_LEVEL"

DESCRIPTION = "HTML/Markdown Viewer - minimal, mask-based."

EPILOG = """\
masks:
  One or more file masks, e.g. *.md docs/*.html my*.*
  Only .html, .htm, .md, .markdown files are shown.
  If no masks are provided, a file selector dialog will appear.

keyboard shortcuts:
  0                   First file
  $                   Last file
  j                   Previous file
  k                   Next file
  p                   Print
  q                   Quit
  +                   Increase font size
  -                   Decrease font size
  =                   Reset font size to normal
  w                   Save current file (output to HTML)
  o                   Open files
  /                   Search in document
  n                   Next search result
  N                   Previous search result
  Home                Scroll to top of document

examples:
  mdview "*.html"
  mdview "my*.*" --css style.css
  mdview "docs/*.md"
  mdview                                   # opens a file selector
  mdview readme.md --output output.html    # renders to a file without a window

requirements:
  Markdown rendering uses pandoc (set MDVIEW_PANDOC to pick a binary);
  without it a built-in renderer is used.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdview",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("masks", nargs="*", metavar="MASK", help="File mask to show (glob with * and ?).")
    # A bare --css (no value) warns and keeps the default theme.
    parser.add_argument(
        "--css",
        metavar="FILE",
        nargs="?",
        const="",
        help="Use a custom CSS file for styling Markdown output.",
    )
    parser.add_argument("--output", metavar="FILE", help="Write rendered HTML to FILE and exit (no window opened).")
    parser.add_argument("--verbose", action="store_true", help="Log debug details to stderr.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(verbose: bool = False) -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="mdview: %(levelname)s: %(message)s", stream=sys.stderr)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    # Intermixed parsing keeps masks that follow options, e.g. `a.md --css x.css b.md`.
    args, unknown = parser.parse_known_intermixed_args(argv)
    # Only `--name` items are options; anything else, `-notes.md` included, is a mask.
    args.ignored = [item for item in unknown if item.startswith("--")]
    args.masks = list(args.masks) + [item for item in unknown if not item.startswith("--")]
    return args


def run_batch(masks: Sequence[str], output: str, renderer: DocumentRenderer, cwd: Path | None = None) -> int:
    """Render the first file the masks resolve to into ``output``; 0 or 1."""
    if not masks:
        print("Error: When using --output, you must specify an input file", file=sys.stderr)
        return 1

    files = expand_masks(masks, cwd)
    if not files:
        print("Error: No matching HTML or Markdown files found.", file=sys.stderr)
        return 1

    source = files[0]
    try:
        html_doc = renderer.render(source)
    except RenderError as exc:
        print(f"Error: Failed to process {source}: {exc.message}", file=sys.stderr)
        return 1

    target = Path(output).expanduser()
    if not target.is_absolute():
        target = (Path(cwd) if cwd is not None else Path.cwd()) / target
    try:
        target.write_bytes(html_doc.encode("utf-8"))
    except OSError as exc:
        print(f"Error writing to output file: {exc.strerror or exc}", file=sys.stderr)
        return 1

    print(f"Output written to: {target}")
    return 0


def run_viewer(masks: Sequence[str], renderer: DocumentRenderer) -> int:
    # Qt and the web engine are only needed once a window is shown.
    from PySide6.QtWidgets import QApplication

    from mdview.window import MdViewWindow, pick_files

    app = QApplication.instance() or QApplication(sys.argv[:1])
    app.setApplicationName("mdview")
    app.setDesktopFileName("mdview")

    if masks:
        files = expand_masks(masks)
        if not files:
            print("No matching HTML or Markdown files found.", file=sys.stderr)
            return 1
    else:
        files = sort_picked(pick_files())
        if not files:
            return 0

    window = MdViewWindow(renderer, files)
    window.show()
    window.raise_()
    window.activateWindow()
    window.controller.load(0)
    return app.exec()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    for option in args.ignored:
        logger.warning("Ignoring unrecognized option %s", option)

    if args.css == "":
        logger.warning("--css requires a file path; using default theme")
        args.css = None
    theme = ThemeSource.resolve(args.css)
    converter = find_converter()
    if converter is None:
        logger.warning("pandoc not found in PATH; Markdown will use the built-in renderer")
    else:
        logger.debug("Using converter %s", converter)
    renderer = DocumentRenderer(theme, converter)

    if args.output is not None:
        return run_batch(args.masks, args.output, renderer)
    return run_viewer(args.masks, renderer)


if __name__ == "__main__":
    raise SystemExit(main())

"""Viewer session: file list, current document, zoom and search state.

The controller drives a *view* object that provides the display primitives:

``show_document(html_doc, source)``
    Display ``html_doc``; ``source`` is the file it came from, or ``None`` for
    generated pages such as error documents.
``set_title(text)``
    Update the window title / status indicator.
``set_zoom(factor)``
    Apply a display scale factor.
``beep()``
    Emit the audible boundary/no-result signal.
``run_script(js, callback=None)``
    Evaluate ``js`` in the displayed page; ``callback`` receives the result.

:class:`mdview.window.MdViewWindow` is the Qt implementation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from mdview.errors import RenderError, WriteError
from mdview.files import sort_picked
from mdview.renderer import DocumentRenderer, error_document
from mdview.search import SCROLL_TOP_JS, SearchState, clear_script, goto_script, highlight_script

logger = logging.getLogger(__name__)

APP_TITLE = "MDViewer"
ZOOM_DEFAULT = 1.0
ZOOM_MIN = 0.5
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1


class SessionController:
    """Own the file list and everything tied to the displayed document."""

    def __init__(self, view, renderer: DocumentRenderer, files: Sequence[Path] = ()):
        self.view = view
        self.renderer = renderer
        self.files: tuple[Path, ...] = tuple(Path(p) for p in files)
        self.index = 0
        self.zoom = ZOOM_DEFAULT
        self.current_html: str | None = None
        self.search_state = SearchState()
        # Bumped on every load so late script callbacks from a replaced page are ignored.
        self._generation = 0
        self._search_in_flight = False
        self._queued_query: str | None = None

    @property
    def current_file(self) -> Path | None:
        if not self.files:
            return None
        return self.files[self.index]

    def title(self) -> str:
        path = self.current_file
        if path is None:
            return APP_TITLE
        text = f"{path.name} [{self.index + 1}/{len(self.files)}]"
        status = self.search_state.describe()
        if status:
            text = f"{text} - {status}"
        return text

    def _update_title(self) -> None:
        self.view.set_title(self.title())

    # Document loading -------------------------------------------------

    def load(self, index: int) -> bool:
        """Render and display file ``index``; False when it failed to render."""
        if not 0 <= index < len(self.files):
            return False
        self.index = index
        self._generation += 1
        self._search_in_flight = False
        self._queued_query = None
        self.search_state.reset()
        self._set_zoom(ZOOM_DEFAULT)

        path = self.files[index]
        try:
            html_doc = self.renderer.render(path)
        except RenderError as exc:
            logger.error("Could not render %s: %s", path, exc.message)
            self.current_html = None
            self.view.show_document(error_document(path.name, exc.message), None)
            self._update_title()
            return False

        self.current_html = html_doc
        self.view.show_document(html_doc, path)
        self._update_title()
        return True

    def reload(self) -> bool:
        return self.load(self.index)

    def first(self) -> bool:
        return self.load(0)

    def last(self) -> bool:
        return self.load(len(self.files) - 1)

    def next(self) -> bool:
        if not self.files:
            self.view.beep()
            return False
        new_index = (self.index + 1) % len(self.files)
        if new_index <= self.index:
            self.view.beep()
        return self.load(new_index)

    def previous(self) -> bool:
        if not self.files:
            self.view.beep()
            return False
        new_index = self.index - 1 if self.index > 0 else len(self.files) - 1
        if new_index >= self.index:
            self.view.beep()
        return self.load(new_index)

    def open_files(self, paths: Iterable[str | Path]) -> bool:
        """Replace the file list with picked files (ascending) and show the first."""
        picked = sort_picked(paths)
        if not picked:
            return False
        self.files = tuple(picked)
        self.load(0)
        return True

    # Export -----------------------------------------------------------

    def suggested_export_name(self) -> str:
        path = self.current_file
        return f"{path.stem}.html" if path is not None else "document.html"

    def save(self, destination: Path) -> bool:
        """Write the last rendered HTML verbatim; False (with a beep) if there is none."""
        if not self.current_html:
            self.view.beep()
            return False
        destination = Path(destination)
        try:
            destination.write_bytes(self.current_html.encode("utf-8"))
        except OSError as exc:
            raise WriteError(destination, exc.strerror or str(exc)) from exc
        logger.info("Saved %s", destination)
        return True

    # Zoom -------------------------------------------------------------

    def _set_zoom(self, factor: float) -> None:
        self.zoom = min(ZOOM_MAX, max(ZOOM_MIN, round(factor, 2)))
        self.view.set_zoom(self.zoom)

    def increase_zoom(self) -> float:
        self._set_zoom(self.zoom + ZOOM_STEP)
        return self.zoom

    def decrease_zoom(self) -> float:
        self._set_zoom(self.zoom - ZOOM_STEP)
        return self.zoom

    def reset_zoom(self) -> float:
        self._set_zoom(ZOOM_DEFAULT)
        return self.zoom

    def scroll_to_top(self) -> None:
        self.view.run_script(SCROLL_TOP_JS)

    # Search -----------------------------------------------------------

    @property
    def search_pending(self) -> bool:
        return self._search_in_flight

    def search(self, query: str) -> None:
        """Highlight ``query`` in the page; an empty query clears the search."""
        if self._search_in_flight:
            # Latest request wins once the running one reports back.
            self._queued_query = query
            return

        if not query:
            self.search_state.reset()
            self.view.run_script(clear_script())
            self._update_title()
            return

        self.search_state.query = query
        self._search_in_flight = True
        generation = self._generation
        self.view.run_script(
            highlight_script(query),
            lambda result, expected=generation: self._on_search_finished(expected, result),
        )

    def clear_search(self) -> None:
        self.search("")

    def _on_search_finished(self, generation: int, result) -> None:
        if generation != self._generation:
            return
        self._search_in_flight = False
        try:
            count = int(result)
        except (TypeError, ValueError):
            logger.debug("Unexpected search result %r", result)
            count = 0
        self.search_state.set_results(count)
        if count:
            self.go_to(0)
        else:
            self.view.beep()
            self._update_title()

        queued, self._queued_query = self._queued_query, None
        if queued is not None:
            self.search(queued)

    def go_to(self, index: int) -> bool:
        """Make match ``index`` current and scroll to it; False for an invalid index."""
        if not self.search_state.is_valid(index):
            return False
        self.search_state.current = index
        generation = self._generation
        self.view.run_script(
            goto_script(index),
            lambda found, expected=generation, wanted=index: self._on_goto_finished(expected, wanted, found),
        )
        self._update_title()
        return True

    def _on_goto_finished(self, generation: int, index: int, found) -> None:
        if generation == self._generation and not found:
            logger.debug("Search marker %d not present in page", index)

    def next_match(self) -> bool:
        target = self.search_state.next_index()
        if target is None:
            self.view.beep()
            return False
        return self.go_to(target)

    def previous_match(self) -> bool:
        target = self.search_state.previous_index()
        if target is None:
            self.view.beep()
            return False
        return self.go_to(target)

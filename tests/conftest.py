"""Shared fixtures: sample document trees, a recording stand-in for the window and the offscreen Qt app."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from mdview.errors import ReadError

# Qt tests run without a display; set before any Qt module is imported.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("QTWEBENGINE_DISABLE_SANDBOX", "1")
os.environ.setdefault("QTWEBENGINE_CHROMIUM_FLAGS", "--no-sandbox --disable-gpu")


class FakeView:
    """Records what the controller asks the window to do.

    Search scripts are answered with ``search_result``; go-to scripts with
    ``True``. With ``defer`` set, callbacks wait until :meth:`flush`.
    """

    def __init__(self) -> None:
        self.documents: list[tuple[str, Path | None]] = []
        self.titles: list[str] = []
        self.zooms: list[float] = []
        self.scripts: list[str] = []
        self.beeps = 0
        self.search_result = 0
        self.defer = False
        self.pending: list[tuple[object, object]] = []

    def show_document(self, html_doc: str, source: Path | None) -> None:
        self.documents.append((html_doc, source))

    def set_title(self, text: str) -> None:
        self.titles.append(text)

    def set_zoom(self, factor: float) -> None:
        self.zooms.append(factor)

    def beep(self) -> None:
        self.beeps += 1

    def run_script(self, js: str, callback=None) -> None:
        self.scripts.append(js)
        if callback is None:
            return
        result = True if "scrollIntoView" in js else self.search_result
        if self.defer:
            self.pending.append((callback, result))
        else:
            callback(result)

    def flush(self) -> None:
        pending, self.pending = self.pending, []
        for callback, result in pending:
            callback(result)


class StubRenderer:
    """Renders ``<html>name</html>``; paths listed in ``failing`` raise ReadError."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.rendered: list[Path] = []

    def render(self, path: Path) -> str:
        self.rendered.append(path)
        if path.name in self.failing:
            raise ReadError(path, "permission denied")
        return f"<html><head></head><body>{path.name}</body></html>"


@pytest.fixture(scope="session")
def qt_app():
    QtWidgets = pytest.importorskip("PySide6.QtWidgets")
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication(["mdview-tests"])


@pytest.fixture
def fake_view() -> FakeView:
    return FakeView()


@pytest.fixture
def stub_renderer() -> StubRenderer:
    return StubRenderer()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """A directory mixing viewable documents with files that must be ignored."""
    for name in ("a.md", "b.md", "c.html", "d.htm", "E.MARKDOWN", "notes.txt", "image.png", "README"):
        (tmp_path / name).write_text(f"content of {name}\n", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "nested.md").write_text("# nested\n", encoding="utf-8")
    (tmp_path / "folder.md").mkdir()
    return tmp_path

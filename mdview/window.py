"""Qt main window: web view, menus, keyboard shortcuts and dialogs."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Sequence

from PySide6.QtCore import QUrl
from PySide6.QtGui import QAction, QDesktopServices, QKeySequence
from PySide6.QtPrintSupport import QPrintDialog, QPrinter
from PySide6.QtWebEngineCore import QWebEnginePage, QWebEngineSettings
from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import QApplication, QFileDialog, QInputDialog, QMainWindow, QMessageBox, QWidget

from mdview.errors import WriteError
from mdview.files import HTML_EXTENSIONS, file_extension
from mdview.renderer import DocumentRenderer, error_document, fits_inline_display
from mdview.session import APP_TITLE, SessionController

logger = logging.getLogger(__name__)

DISPLAY_FILE_NAME = "mdview-display.html"
OPEN_DIALOG_FILTER = "HTML or Markdown (*.html *.htm *.md *.markdown *.HTML *.HTM *.MD *.MARKDOWN)"
EXTERNAL_SCHEMES = {"http", "https", "mailto"}


def pick_files(parent: QWidget | None = None, start_dir: Path | None = None) -> list[str]:
    """Run the multi-file open dialog; empty list when cancelled."""
    paths, _selected_filter = QFileDialog.getOpenFileNames(
        parent,
        "Select HTML or Markdown files",
        str(start_dir or Path.cwd()),
        OPEN_DIALOG_FILTER,
    )
    return list(paths)


class ViewerPage(QWebEnginePage):
    """Send clicked web and mail links to the desktop instead of the viewer."""

    def acceptNavigationRequest(self, url, nav_type, is_main_frame):  # noqa: N802
        if (
            nav_type == QWebEnginePage.NavigationType.NavigationTypeLinkClicked
            and url.scheme().lower() in EXTERNAL_SCHEMES
        ):
            QDesktopServices.openUrl(url)
            return False
        return super().acceptNavigationRequest(url, nav_type, is_main_frame)


class MdViewWindow(QMainWindow):
    def __init__(self, renderer: DocumentRenderer, files: Sequence[Path]):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self._printer: QPrinter | None = None

        self.preview = QWebEngineView(self)
        self.preview.setPage(ViewerPage(self.preview))
        # Documents are local HTML; MathJax in converter output loads from a CDN.
        preview_settings = self.preview.settings()
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessRemoteUrls, True)
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.LocalContentCanAccessFileUrls, True)
        preview_settings.setAttribute(QWebEngineSettings.WebAttribute.PrintElementBackgrounds, True)
        self.preview.loadFinished.connect(self._on_preview_load_finished)
        self.preview.printFinished.connect(self._on_print_finished)
        self.setCentralWidget(self.preview)

        self.controller = SessionController(self, renderer, files)
        self._build_menus()
        self._place_on_screen()

    # View interface used by SessionController -------------------------

    def show_document(self, html_doc: str, source: Path | None) -> None:
        if source is not None:
            base_url = QUrl.fromLocalFile(f"{source.resolve().parent}/")
        else:
            base_url = QUrl()

        if fits_inline_display(html_doc):
            self.preview.setHtml(html_doc, base_url)
            return

        if source is not None and file_extension(source.name) in HTML_EXTENSIONS:
            self.preview.load(QUrl.fromLocalFile(str(source.resolve())))
            return

        display_path = Path(tempfile.gettempdir()) / DISPLAY_FILE_NAME
        try:
            display_path.write_bytes(html_doc.encode("utf-8"))
        except OSError as exc:
            logger.error("Could not stage large document at %s: %s", display_path, exc)
            name = source.name if source is not None else DISPLAY_FILE_NAME
            self.preview.setHtml(error_document(name, f"could not stage large document: {exc}"))
            return
        self.preview.load(QUrl.fromLocalFile(str(display_path)))

    def set_title(self, text: str) -> None:
        self.setWindowTitle(text)

    def set_zoom(self, factor: float) -> None:
        self.preview.setZoomFactor(factor)

    def beep(self) -> None:
        QApplication.beep()

    def run_script(self, js: str, callback=None) -> None:
        if callback is None:
            self.preview.page().runJavaScript(js)
        else:
            self.preview.page().runJavaScript(js, callback)

    # Menus and shortcuts ----------------------------------------------

    def _add_action(self, menu, text: str, shortcuts: Sequence[str], slot) -> QAction:
        action = QAction(text, self)
        if shortcuts:
            action.setShortcuts([QKeySequence(key) for key in shortcuts])
        action.triggered.connect(lambda _checked=False: slot())
        menu.addAction(action)
        # Window-level so shortcuts keep working while the web view has focus.
        self.addAction(action)
        return action

    def _build_menus(self) -> None:
        """App/File/View menus carrying the single-key shortcuts."""
        menu_bar = self.menuBar()
        controller = self.controller

        app_menu = menu_bar.addMenu("&App")
        self._add_action(app_menu, "Next File (k)", ["K"], controller.next)
        self._add_action(app_menu, "Previous File (j)", ["J"], controller.previous)
        self._add_action(app_menu, "First File (0)", ["0"], controller.first)
        self._add_action(app_menu, "Last File ($)", ["$"], controller.last)
        app_menu.addSeparator()
        self._add_action(app_menu, "Quit (q)", ["Q"], self.close)

        file_menu = menu_bar.addMenu("&File")
        self._add_action(file_menu, "Open Files... (o)", ["O"], self.open_files)
        file_menu.addSeparator()
        self._add_action(file_menu, "Save As HTML... (w)", ["W"], self.save_document_as)
        file_menu.addSeparator()
        self._add_action(file_menu, "Print... (p)", ["P"], self.print_document)

        view_menu = menu_bar.addMenu("&View")
        self._add_action(view_menu, "Increase Font Size (+)", ["+"], controller.increase_zoom)
        self._add_action(view_menu, "Decrease Font Size (-)", ["-", "_"], controller.decrease_zoom)
        self._add_action(view_menu, "Reset Font Size (=)", ["="], controller.reset_zoom)
        view_menu.addSeparator()
        self._add_action(view_menu, "Search (/)", ["/"], self.show_search_prompt)
        self._add_action(view_menu, "Next Match (n)", ["N"], controller.next_match)
        self._add_action(view_menu, "Previous Match (N)", ["Shift+N"], controller.previous_match)
        view_menu.addSeparator()
        self._add_action(view_menu, "Scroll to Top (Home)", ["Home"], controller.scroll_to_top)

    def _place_on_screen(self) -> None:
        screen = self.screen() or QApplication.primaryScreen()
        if screen is None:
            self.resize(1000, 800)
            return
        area = screen.availableGeometry()
        width = int(area.width() * 0.7)
        height = int(area.height() * 0.9)
        self.setGeometry(
            area.x() + (area.width() - width) // 2,
            area.y() + (area.height() - height) // 2,
            width,
            height,
        )

    # Actions ----------------------------------------------------------

    def show_search_prompt(self) -> None:
        """Modal prompt; shortcuts are suspended while it is open."""
        if self.controller.search_pending:
            self.statusBar().showMessage("Search already running", 2000)
            return
        text, ok = QInputDialog.getText(
            self,
            "Search in Document",
            "Search text:",
            text=self.controller.search_state.query,
        )
        if ok:
            self.controller.search(text)

    def open_files(self) -> None:
        current = self.controller.current_file
        start_dir = current.parent if current is not None else Path.cwd()
        self.controller.open_files(pick_files(self, start_dir))

    def save_document_as(self) -> None:
        if not self.controller.current_html:
            self.beep()
            return
        current = self.controller.current_file
        start_dir = current.parent if current is not None else Path.cwd()
        target, _selected_filter = QFileDialog.getSaveFileName(
            self,
            "Save HTML",
            str(start_dir / self.controller.suggested_export_name()),
            "HTML (*.html)",
        )
        if not target:
            return
        try:
            self.controller.save(Path(target))
        except WriteError as exc:
            logger.error("%s", exc)
            QMessageBox.critical(self, "Error Saving File", f"Could not save the file:\n{exc.reason}")
            self.statusBar().showMessage(f"Save failed: {exc.reason}", 5000)
            return
        self.statusBar().showMessage(f"Saved {target}", 4000)

    def print_document(self) -> None:
        if self._printer is not None:
            self.statusBar().showMessage("Printing already in progress", 3000)
            return
        printer = QPrinter(QPrinter.PrinterMode.HighResolution)
        dialog = QPrintDialog(printer, self)
        dialog.setWindowTitle("Print Document")
        if not dialog.exec():
            return
        self._printer = printer
        self.statusBar().showMessage("Printing...")
        self.preview.print(printer)

    # Signals ----------------------------------------------------------

    def _on_print_finished(self, ok: bool) -> None:
        self._printer = None
        if ok:
            self.statusBar().showMessage("Printed", 3000)
        else:
            logger.warning("Printing %s failed", self.controller.current_file)
            self.statusBar().showMessage("Printing failed", 5000)

    def _on_preview_load_finished(self, ok: bool) -> None:
        if not ok:
            logger.warning("Preview of %s did not finish loading", self.controller.current_file)
            self.statusBar().showMessage("Preview load failed", 5000)
            return
        self.statusBar().clearMessage()

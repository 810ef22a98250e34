"""Turn a source document into the HTML shown in the viewer."""

from __future__ import annotations

import html
import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from markdown_it import MarkdownIt
from mdit_py_plugins.dollarmath import dollarmath_plugin

from mdview.errors import ConversionError, ReadError, RenderError
from mdview.files import HTML_EXTENSIONS, MARKDOWN_EXTENSIONS, file_extension

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".mdview.cfg"
CONVERTER_ENV_VAR = "MDVIEW_PANDOC"
CONVERTER_OUTPUT_NAME = "mdview-output.html"
HIGHLIGHT_STYLE = "pygments"
MATHJAX_URL = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-chtml-full.js"

# QWebEngineView.setHtml percent-encodes the page into a data: URL, which is
# capped at 2 MB; keep some headroom below that.
INLINE_DISPLAY_LIMIT = 2_000_000

DEFAULT_CSS = """\
body{font-family:-apple-system,BlinkMacSystemFont,"Segoe UI","Noto Sans",Helvetica,Arial,sans-serif;line-height:1.6;color:#333;max-width:900px;margin:0 auto;padding:20px;background-color:#fff}
h1,h2,h3,h4,h5,h6{margin-top:24px;margin-bottom:16px;font-weight:600;line-height:1.25}
h1{font-size:2em;border-bottom:1px solid #eaecef;padding-bottom:.3em}
h2{font-size:1.5em;border-bottom:1px solid #eaecef;padding-bottom:.3em}
h3{font-size:1.25em}h4{font-size:1em}h5{font-size:.875em}h6{font-size:.85em;color:#6a737d}
pre{background-color:#f6f8fa;border-radius:3px;padding:16px;overflow:auto}
code{background-color:rgba(27,31,35,.05);border-radius:3px;font-family:"SFMono-Regular",Consolas,"Liberation Mono","DejaVu Sans Mono",monospace;font-size:85%;padding:.2em .4em}
pre code{background-color:transparent;padding:0}
blockquote{border-left:4px solid #dfe2e5;color:#6a737d;padding:0 1em;margin:0 0 16px}
img{max-width:100%}
table{border-collapse:collapse;width:100%;margin-bottom:16px}
table th,table td{border:1px solid #dfe2e5;padding:6px 13px}
table tr{background-color:#fff;border-top:1px solid #c6cbd1}
table tr:nth-child(2n){background-color:#f6f8fa}
@media print{body{max-width:100%;margin:0;padding:0}}
"""

# Appended after the theme so these rules win at equal specificity.
PRINT_OVERRIDES_CSS = """\
@media print {
    body {
        margin: 0 !important;
        padding: 0.5in !important;
        width: auto !important;
        max-width: 100% !important;
        font-size: 12pt;
    }
    pre, blockquote {
        page-break-inside: avoid;
    }
}
"""


def _config_file_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def _load_default_css_from_config(cfg_path: Path | None = None) -> Path | None:
    """Stylesheet named on the first non-empty line of ~/.mdview.cfg, if any."""
    cfg_path = cfg_path or _config_file_path()
    try:
        if not cfg_path.is_file():
            return None
        for line in cfg_path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                return Path(line.strip()).expanduser()
    except (OSError, UnicodeDecodeError):
        # A broken config only loses the default stylesheet.
        pass
    return None


def find_converter() -> str | None:
    """Locate pandoc from MDVIEW_PANDOC or PATH."""
    env_value = os.environ.get(CONVERTER_ENV_VAR, "").strip()
    if env_value:
        candidate = Path(env_value).expanduser()
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate.resolve())
        found = shutil.which(env_value)
        if found:
            return found
        logger.warning("%s=%s is not an executable; looking for pandoc on PATH", CONVERTER_ENV_VAR, env_value)
    return shutil.which("pandoc")


@dataclass(frozen=True)
class ThemeSource:
    """Display stylesheet: a user file read on every render, or the built-in default."""

    css_path: Path | None = None

    @classmethod
    def resolve(cls, css_arg: str | None, cwd: Path | None = None, cfg_path: Path | None = None) -> "ThemeSource":
        if css_arg is not None:
            candidate = Path(css_arg).expanduser()
            if not candidate.is_absolute():
                candidate = (Path(cwd) if cwd is not None else Path.cwd()) / candidate
            if not candidate.exists():
                logger.warning("CSS file not found: %s (using default theme)", candidate)
                return cls()
            return cls(candidate)

        configured = _load_default_css_from_config(cfg_path)
        if configured is not None and configured.is_file():
            return cls(configured)
        return cls()

    def stylesheet(self) -> str:
        if self.css_path is None:
            return DEFAULT_CSS
        try:
            return self.css_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Cannot read CSS file %s (%s); using default theme", self.css_path, exc)
            return DEFAULT_CSS


def inject_styles(html_doc: str, css: str) -> str:
    """Insert theme CSS plus print overrides right before the first </head>."""
    head_end = html_doc.find("</head>")
    if head_end < 0:
        return html_doc
    style_tag = f"<style>\n{css}\n\n{PRINT_OVERRIDES_CSS}\n</style>\n"
    return html_doc[:head_end] + style_tag + html_doc[head_end:]


def inline_display_size(html_doc: str) -> int:
    """Length of ``html_doc`` once percent-encoded as setHtml encodes it."""
    return len(quote(html_doc, safe=""))


def fits_inline_display(html_doc: str) -> bool:
    return inline_display_size(html_doc) < INLINE_DISPLAY_LIMIT


def error_document(title: str, message: str) -> str:
    """Small standalone page used in place of a document that failed to render."""
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <title>{html.escape(title)}</title>
  <style>
    body {{
      font-family: "Noto Sans", "DejaVu Sans", sans-serif;
      margin: 2rem;
      color: #1f2937;
    }}
    pre {{
      white-space: pre-wrap;
      color: #b91c1c;
    }}
  </style>
</head>
<body>
  <h1>Error</h1>
  <p>Failed to process {html.escape(title)}:</p>
  <pre>{html.escape(message)}</pre>
</body>
</html>
"""


class BuiltinMarkdownRenderer:
    """In-process Markdown to HTML, used when pandoc is not available."""

    def __init__(self) -> None:
        self._md = MarkdownIt(
            "commonmark",
            {"html": True, "typographer": True},
        ).enable("table").enable("strikethrough")
        # Math becomes dedicated tokens before emphasis rules can mangle TeX.
        self._md.use(dollarmath_plugin)

        def math_inline(tokens, idx, options, env):
            return f'<span class="math inline">\\({html.escape(tokens[idx].content)}\\)</span>'

        def math_block(tokens, idx, options, env):
            body = (tokens[idx].content or "").strip("\n")
            return f'<div class="math display">\\[\n{html.escape(body)}\n\\]</div>\n'

        self._md.renderer.rules["math_inline"] = math_inline
        self._md.renderer.rules["math_block"] = math_block

    def render_document(self, markdown_text: str, title: str) -> str:
        body = self._md.render(markdown_text)
        return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>{html.escape(title)}</title>
  <script defer src="{MATHJAX_URL}"></script>
</head>
<body>
{body}
</body>
</html>
"""


class DocumentRenderer:
    """Render HTML files verbatim and Markdown through pandoc.

    Conversion output goes to one fixed temporary file, so callers must not
    render two documents at the same time.
    """

    def __init__(self, theme: ThemeSource | None = None, converter: str | None = None):
        self.theme = theme or ThemeSource()
        self.converter = converter
        self.output_path = Path(tempfile.gettempdir()) / CONVERTER_OUTPUT_NAME
        self._builtin: BuiltinMarkdownRenderer | None = None

    def render(self, path: Path) -> str:
        path = Path(path)
        extension = file_extension(path.name)
        if extension in HTML_EXTENSIONS:
            return self._read_html(path)
        if extension in MARKDOWN_EXTENSIONS:
            return self._render_markdown(path)
        raise RenderError(path, f"unsupported file type {extension or '(none)'}")

    def _read_html(self, path: Path) -> str:
        try:
            # Decode bytes directly so line endings stay untouched.
            return path.read_bytes().decode("utf-8")
        except OSError as exc:
            raise ReadError(path, exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise ReadError(path, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc

    def _render_markdown(self, path: Path) -> str:
        if self.converter is None:
            html_doc = self._render_builtin(path)
        else:
            html_doc = self._run_converter(path)
        return inject_styles(html_doc, self.theme.stylesheet())

    def converter_command(self, path: Path) -> list[str]:
        return [
            self.converter or "pandoc",
            str(path),
            "--from=markdown",
            "--to=html5",
            "--embed-resources",
            "--standalone",
            f"--highlight-style={HIGHLIGHT_STYLE}",
            "--mathjax",
            "-o",
            str(self.output_path),
        ]

    def _run_converter(self, path: Path) -> str:
        command = self.converter_command(path.resolve())
        logger.debug("Running %s", " ".join(command))
        try:
            # Run beside the source so relative images resolve and get embedded.
            result = subprocess.run(
                command,
                cwd=str(path.resolve().parent),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ConversionError(path, f"could not start converter: {exc}") from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"pandoc exited with status {result.returncode}"
            if stderr:
                message = f"{message}: {stderr}"
            raise ConversionError(path, message, exit_code=result.returncode, stderr=stderr)

        try:
            return self.output_path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConversionError(path, f"unreadable converter output: {exc}") from exc

    def _render_builtin(self, path: Path) -> str:
        try:
            markdown_text = path.read_bytes().decode("utf-8")
        except OSError as exc:
            raise ReadError(path, exc.strerror or str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise ReadError(path, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc
        if self._builtin is None:
            self._builtin = BuiltinMarkdownRenderer()
        return self._builtin.render_document(markdown_text, path.name)

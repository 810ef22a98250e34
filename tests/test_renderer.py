"""Document rendering: HTML pass-through, pandoc conversion and style injection."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from mdview import renderer as renderer_module
from mdview.errors import ConversionError, ReadError, RenderError
from mdview.renderer import (
    DEFAULT_CSS,
    INLINE_DISPLAY_LIMIT,
    PRINT_OVERRIDES_CSS,
    DocumentRenderer,
    ThemeSource,
    error_document,
    find_converter,
    fits_inline_display,
    inject_styles,
    inline_display_size,
)

PANDOC_PAGE = (
    "<!DOCTYPE html>\n<html>\n<head>\n<title>t</title>\n</head>\n"
    "<body>\n<h1>Hello</h1>\n</body>\n</html>\n"
)


class FakeConverter:
    """Stands in for subprocess.run: writes ``page`` to the -o target."""

    def __init__(self, page: str = PANDOC_PAGE, returncode: int = 0, stderr: str = ""):
        self.page = page
        self.returncode = returncode
        self.stderr = stderr
        self.calls: list[tuple[list[str], dict]] = []

    def __call__(self, command, **kwargs):
        self.calls.append((list(command), kwargs))
        if self.returncode == 0:
            output = Path(command[command.index("-o") + 1])
            output.write_bytes(self.page.encode("utf-8"))
        return subprocess.CompletedProcess(command, self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture
def isolated_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    out_dir = tmp_path / "tmpdir"
    out_dir.mkdir()
    monkeypatch.setattr(renderer_module.tempfile, "gettempdir", lambda: str(out_dir))
    return out_dir


class TestHtmlPassThrough:
    def test_identity(self, tmp_path: Path):
        raw = "<html>\r\n<body>caf\u00e9 \u2014 \u65e5\u672c</body>\r\n</html>\n"
        page = tmp_path / "page.HTML"
        page.write_bytes(raw.encode("utf-8"))
        assert DocumentRenderer().render(page) == raw

    def test_htm_is_not_styled(self, tmp_path: Path):
        page = tmp_path / "page.htm"
        page.write_text("<html><head></head><body>x</body></html>", encoding="utf-8")
        assert "<style>" not in DocumentRenderer().render(page)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ReadError) as info:
            DocumentRenderer().render(tmp_path / "gone.html")
        assert info.value.path.name == "gone.html"

    def test_invalid_utf8(self, tmp_path: Path):
        page = tmp_path / "latin1.html"
        page.write_bytes("caf\u00e9".encode("latin-1"))
        with pytest.raises(ReadError, match="UTF-8"):
            DocumentRenderer().render(page)

    def test_unsupported_extension(self, tmp_path: Path):
        other = tmp_path / "notes.txt"
        other.write_text("x", encoding="utf-8")
        with pytest.raises(RenderError):
            DocumentRenderer().render(other)


class TestInjectStyles:
    def test_inserted_before_head_close(self):
        result = inject_styles("<html><head><title>x</title></head><body></body></html>", "body{color:red}")
        head, _, body = result.partition("</head>")
        assert head.endswith("</style>\n")
        assert "body{color:red}" in head
        assert "<body></body>" in body

    def test_theme_precedes_print_overrides(self):
        result = inject_styles("<head></head>", "h1{margin:0}")
        assert result.index("h1{margin:0}") < result.index("page-break-inside: avoid")
        assert PRINT_OVERRIDES_CSS in result

    def test_without_head_unchanged(self):
        page = "<body>no head here</body>"
        assert inject_styles(page, DEFAULT_CSS) == page

    def test_only_first_head_close(self):
        result = inject_styles("<head></head><pre>&lt;/head&gt;</head></pre>", "x{}")
        assert result.count("<style>") == 1


class TestMarkdownConversion:
    def test_converter_arguments(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        fake = FakeConverter()
        monkeypatch.setattr(renderer_module.subprocess, "run", fake)
        source = tmp_path / "doc.md"
        source.write_text("# Hello\n", encoding="utf-8")

        DocumentRenderer(converter="/usr/bin/pandoc").render(source)

        command, kwargs = fake.calls[0]
        assert command[0] == "/usr/bin/pandoc"
        assert command[1] == str(source.resolve())
        for flag in ("--from=markdown", "--to=html5", "--embed-resources", "--standalone", "--mathjax"):
            assert flag in command
        assert "--highlight-style=pygments" in command
        assert command[command.index("-o") + 1] == str(isolated_output / "mdview-output.html")
        assert kwargs["cwd"] == str(source.resolve().parent)

    def test_default_theme_injected(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(renderer_module.subprocess, "run", FakeConverter())
        source = tmp_path / "doc.markdown"
        source.write_text("# Hello\n", encoding="utf-8")

        page = DocumentRenderer(converter="pandoc").render(source)

        assert DEFAULT_CSS in page
        assert page.index("<style>") < page.index("</head>")
        assert "<h1>Hello</h1>" in page

    def test_custom_css_read_on_every_render(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(renderer_module.subprocess, "run", FakeConverter())
        css = tmp_path / "theme.css"
        css.write_text("body{color:teal}", encoding="utf-8")
        source = tmp_path / "doc.md"
        source.write_text("x", encoding="utf-8")
        renderer = DocumentRenderer(ThemeSource(css), converter="pandoc")

        first = renderer.render(source)
        css.write_text("body{color:navy}", encoding="utf-8")
        second = renderer.render(source)

        assert "body{color:teal}" in first
        assert "body{color:navy}" in second
        assert DEFAULT_CSS not in second

    def test_unreadable_custom_css_falls_back(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(renderer_module.subprocess, "run", FakeConverter())
        source = tmp_path / "doc.md"
        source.write_text("x", encoding="utf-8")
        renderer = DocumentRenderer(ThemeSource(tmp_path / "deleted.css"), converter="pandoc")
        assert DEFAULT_CSS in renderer.render(source)

    def test_output_without_head_is_returned_as_is(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(renderer_module.subprocess, "run", FakeConverter(page="<p>fragment</p>"))
        source = tmp_path / "doc.md"
        source.write_text("x", encoding="utf-8")
        assert DocumentRenderer(converter="pandoc").render(source) == "<p>fragment</p>"

    def test_nonzero_exit(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(renderer_module.subprocess, "run", FakeConverter(returncode=64, stderr="bad input"))
        source = tmp_path / "doc.md"
        source.write_text("x", encoding="utf-8")

        with pytest.raises(ConversionError) as info:
            DocumentRenderer(converter="pandoc").render(source)

        assert info.value.exit_code == 64
        assert info.value.stderr == "bad input"
        assert "64" in info.value.message

    def test_converter_cannot_start(self, tmp_path: Path, isolated_output: Path, monkeypatch: pytest.MonkeyPatch):
        def missing(*_args, **_kwargs):
            raise FileNotFoundError(2, "No such file or directory")

        monkeypatch.setattr(renderer_module.subprocess, "run", missing)
        source = tmp_path / "doc.md"
        source.write_text("x", encoding="utf-8")
        with pytest.raises(ConversionError) as info:
            DocumentRenderer(converter="/nowhere/pandoc").render(source)
        assert info.value.exit_code is None


class TestBuiltinMarkdown:
    def test_renders_without_converter(self, tmp_path: Path):
        source = tmp_path / "doc.md"
        source.write_text("# Title\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\n~~gone~~\n", encoding="utf-8")

        page = DocumentRenderer(converter=None).render(source)

        assert "<h1>Title</h1>" in page
        assert "<table>" in page
        assert "<s>gone</s>" in page
        assert DEFAULT_CSS in page
        assert page.index(DEFAULT_CSS) < page.index("</head>")

    def test_math_is_left_for_mathjax(self, tmp_path: Path):
        source = tmp_path / "math.md"
        source.write_text("Inline $a_1 < b$ and\n\n$$\nx^2\n$$\n", encoding="utf-8")

        page = DocumentRenderer(converter=None).render(source)

        assert '<span class="math inline">\\(a_1 &lt; b\\)</span>' in page
        assert "\\[\nx^2\n\\]" in page

    def test_missing_markdown_file(self, tmp_path: Path):
        with pytest.raises(ReadError):
            DocumentRenderer(converter=None).render(tmp_path / "nothing.md")


class TestThemeSource:
    def test_relative_css_resolved_against_cwd(self, tmp_path: Path):
        (tmp_path / "style.css").write_text("x{}", encoding="utf-8")
        theme = ThemeSource.resolve("style.css", cwd=tmp_path, cfg_path=tmp_path / "none.cfg")
        assert theme.css_path == tmp_path / "style.css"

    def test_missing_css_warns_and_uses_default(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        with caplog.at_level("WARNING"):
            theme = ThemeSource.resolve("absent.css", cwd=tmp_path, cfg_path=tmp_path / "none.cfg")
        assert theme.css_path is None
        assert theme.stylesheet() == DEFAULT_CSS
        assert "CSS file not found" in caplog.text

    def test_config_file_supplies_default_css(self, tmp_path: Path):
        css = tmp_path / "house.css"
        css.write_text("x{}", encoding="utf-8")
        cfg = tmp_path / "mdview.cfg"
        cfg.write_text(f"\n{css}\n", encoding="utf-8")
        assert ThemeSource.resolve(None, cfg_path=cfg).css_path == css

    def test_config_pointing_nowhere_is_ignored(self, tmp_path: Path):
        cfg = tmp_path / "mdview.cfg"
        cfg.write_text(str(tmp_path / "nope.css"), encoding="utf-8")
        assert ThemeSource.resolve(None, cfg_path=cfg).css_path is None


class TestFindConverter:
    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        binary = tmp_path / "my-pandoc"
        binary.write_text("#!/bin/sh\n", encoding="utf-8")
        binary.chmod(0o755)
        monkeypatch.setenv("MDVIEW_PANDOC", str(binary))
        assert find_converter() == str(binary.resolve())

    def test_path_lookup(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("MDVIEW_PANDOC", raising=False)
        monkeypatch.setattr(renderer_module.shutil, "which", lambda name: f"/opt/bin/{name}")
        assert find_converter() == "/opt/bin/pandoc"

    def test_absent(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("MDVIEW_PANDOC", raising=False)
        monkeypatch.setattr(renderer_module.shutil, "which", lambda name: None)
        assert find_converter() is None


def test_error_document_escapes_message():
    page = error_document("x.md", "<script>alert(1)</script>")
    assert "<script>alert" not in page
    assert "&lt;script&gt;" in page
    assert "</head>" in page


class TestInlineDisplaySize:
    def test_markup_characters_count_three_times(self):
        assert inline_display_size("ab") == 2
        assert inline_display_size("a b") == 5
        assert inline_display_size('<p class="x">') == 25

    def test_non_ascii_counts_encoded_bytes(self):
        assert inline_display_size("é") == 6

    def test_small_page_fits(self):
        assert fits_inline_display(PANDOC_PAGE)

    def test_markup_heavy_page_under_raw_limit_does_not_fit(self):
        page = '<p class="x">a b</p>\n' * 60_000
        assert len(page.encode("utf-8")) < INLINE_DISPLAY_LIMIT
        assert not fits_inline_display(page)

    def test_plain_text_near_limit_fits(self):
        assert fits_inline_display("a" * (INLINE_DISPLAY_LIMIT - 1))
        assert not fits_inline_display("a" * INLINE_DISPLAY_LIMIT)

"""In-document search: page scripts plus match-index bookkeeping.

The DOM work (marker insertion, restyling, scrolling) runs inside the web
view through ``runJavaScript``; :class:`SearchState` keeps the Python side of
the state so it can be reasoned about without a browser.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

MARK_CLASS = "mdview-search-mark"
MARK_INDEX_ATTR = "data-mdview-search-index"
MARK_COLORS = ("yellow", "red")
CURRENT_MARK_COLORS = ("orange", "darkred")

_CLEAR_MARKS_JS = """
  for (const mark of Array.from(document.querySelectorAll("span.__MARK_CLASS__"))) {
    const parent = mark.parentNode;
    if (!parent) continue;
    parent.replaceChild(document.createTextNode(mark.textContent || ""), mark);
    parent.normalize();
  }
"""

_HIGHLIGHT_JS = """
(() => {
  // Strip previous marks first so repeated searches never nest.
__CLEAR_MARKS__
  const needle = __QUERY_JSON__;
  if (!needle || !document.body) return 0;
  const lowered = needle.toLowerCase();

  const skipTags = new Set(["SCRIPT", "STYLE", "NOSCRIPT", "TEXTAREA"]);
  const textNodes = [];
  const collect = (node) => {
    if (node.nodeType === Node.TEXT_NODE) {
      textNodes.push(node);
    } else if (node.nodeType === Node.ELEMENT_NODE && !skipTags.has(node.tagName)) {
      for (const child of Array.from(node.childNodes)) {
        collect(child);
      }
    }
  };
  collect(document.body);

  let count = 0;
  for (let node of textNodes) {
    let content = node.nodeValue || "";
    let position = content.toLowerCase().indexOf(lowered);
    while (position !== -1) {
      const parent = node.parentNode;
      const before = document.createTextNode(content.substring(0, position));
      const after = document.createTextNode(content.substring(position + needle.length));
      const mark = document.createElement("span");
      mark.className = "__MARK_CLASS__";
      mark.setAttribute("__MARK_INDEX_ATTR__", String(count));
      mark.style.backgroundColor = "__MARK_BG__";
      mark.style.color = "__MARK_FG__";
      mark.textContent = content.substring(position, position + needle.length);
      parent.insertBefore(before, node);
      parent.insertBefore(mark, node);
      parent.insertBefore(after, node);
      parent.removeChild(node);
      count += 1;
      node = after;
      content = after.nodeValue || "";
      position = content.toLowerCase().indexOf(lowered);
    }
  }
  return count;
})();
"""

_GOTO_JS = """
(() => {
  for (const mark of Array.from(document.querySelectorAll("span.__MARK_CLASS__"))) {
    mark.style.backgroundColor = "__MARK_BG__";
    mark.style.color = "__MARK_FG__";
  }
  const current = document.querySelector('span.__MARK_CLASS__[__MARK_INDEX_ATTR__="__INDEX__"]');
  if (!current) return false;
  current.style.backgroundColor = "__CURRENT_BG__";
  current.style.color = "__CURRENT_FG__";
  current.scrollIntoView({ behavior: "smooth", block: "center" });
  return true;
})();
"""

SCROLL_TOP_JS = "window.scrollTo(0, 0);"


def _fill_mark_tokens(js: str) -> str:
    js = js.replace("__MARK_CLASS__", MARK_CLASS)
    js = js.replace("__MARK_INDEX_ATTR__", MARK_INDEX_ATTR)
    js = js.replace("__MARK_BG__", MARK_COLORS[0])
    js = js.replace("__MARK_FG__", MARK_COLORS[1])
    js = js.replace("__CURRENT_BG__", CURRENT_MARK_COLORS[0])
    return js.replace("__CURRENT_FG__", CURRENT_MARK_COLORS[1])


def clear_script() -> str:
    """Script that removes every marker and re-merges the split text nodes."""
    return _fill_mark_tokens("(() => {\n" + _CLEAR_MARKS_JS + "  return 0;\n})();\n")


def highlight_script(query: str) -> str:
    """Script that marks every case-insensitive occurrence and returns the count."""
    if not query:
        return clear_script()
    js = _fill_mark_tokens(_HIGHLIGHT_JS.replace("__CLEAR_MARKS__", _CLEAR_MARKS_JS))
    # JSON keeps quotes and backslashes in the query from breaking the script.
    return js.replace("__QUERY_JSON__", json.dumps(query))


def goto_script(index: int) -> str:
    """Script that styles marker ``index`` as current and scrolls to it."""
    return _fill_mark_tokens(_GOTO_JS.replace("__INDEX__", str(int(index))))


@dataclass
class SearchState:
    """Query and match position for the displayed document."""

    query: str = ""
    total: int = 0
    current: int = -1

    def reset(self) -> None:
        self.query = ""
        self.total = 0
        self.current = -1

    def set_results(self, count: int) -> None:
        self.total = max(0, int(count))
        self.current = 0 if self.total else -1

    def is_valid(self, index: int) -> bool:
        return 0 <= index < self.total

    def next_index(self) -> int | None:
        if not self.total:
            return None
        return (self.current + 1) % self.total

    def previous_index(self) -> int | None:
        if not self.total:
            return None
        return (self.current - 1 + self.total) % self.total

    def describe(self) -> str:
        if not self.query:
            return ""
        if not self.total:
            return "No matches"
        return f"{self.current + 1}/{self.total} matches"

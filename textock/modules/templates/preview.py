import re
from markdown_it import MarkdownIt

# Raw HTML in template text is escaped, never passed through
_renderer = MarkdownIt("commonmark", {"html": False, "linkify": False}).enable(["table", "strikethrough"])

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def render_markdown(text: str) -> str:
    """Markdown to an HTML fragment, for display only."""
    if not text:
        return ""
    return _renderer.render(text)


def download_filename(title: str, is_markdown: bool) -> str:
    stem = _UNSAFE_FILENAME_CHARS.sub("_", title or "").lower() or "template"
    return f"{stem}.{'md' if is_markdown else 'txt'}"

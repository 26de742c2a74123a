from typing import Optional

from eda_mcp.config import PREVIEW_CHARS

TRUNCATION_MARKER = "...(truncated)"


def preview(text: Optional[str], limit: int = PREVIEW_CHARS) -> str:
    """Cut text to `limit` characters, appending a marker when anything was dropped."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def read_text(path: str) -> Optional[str]:
    """Returns the file contents, or None when it is missing or unreadable."""
    try:
        with open(path, "r", encoding="utf-8", errors="ignore") as f:
            return f.read()
    except OSError:
        return None

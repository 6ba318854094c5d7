"""HTML escaping utilities for XSS prevention."""

from typing import Any

from markupsafe import Markup


def escape_html(value: Any) -> str:
    """Escape HTML special characters to prevent XSS.

    Escapes: & < > "

    Values exposing ``__html__`` are already safe and returned as markup.
    ``True`` renders as ``true``; ``False`` and ``None`` render as nothing.

    Args:
        value: Any value to escape (will be converted to string first)

    Returns:
        HTML-escaped string safe for embedding in HTML content
    """
    if hasattr(value, "__html__"):
        return str(Markup(value))
    if value is None or value is False:
        return ""
    if value is True:
        return "true"
    s = str(value)
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )

"""Debug error pages, installed by ``Zinc(debug=True)``."""

import linecache
import os
import traceback
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from types import TracebackType

from jinja2 import Environment, PackageLoader, select_autoescape
from starlette.responses import HTMLResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from zinc.compiler.exceptions import TemplateSyntaxError

# Templates live in zinc/templates/error/
_pages = Environment(
    loader=PackageLoader("zinc", "templates"),
    autoescape=select_autoescape(["html"]),
)


def error_page(name: str, **context: Any) -> HTMLResponse:
    """Render ``error/<name>.html`` as a 500 response."""
    html = _pages.get_template(f"error/{name}.html").render(**context)
    return HTMLResponse(html, status_code=500)


def _context_lines(filename: str, lineno: int, radius: int = 5) -> List[Dict[str, Any]]:
    if not os.path.exists(filename):
        return []
    linecache.checkcache(filename)
    lines = linecache.getlines(filename)
    start = max(1, lineno - radius)
    end = min(len(lines), lineno + radius)
    return [
        {
            "num": i,
            "content": lines[i - 1].rstrip(),
            "is_current": i == lineno,
        }
        for i in range(start, end + 1)
    ]


class DevErrorMiddleware:
    """Turn exceptions raised while rendering a page into debug pages.

    A ``TemplateSyntaxError`` gets a page showing the offending render
    method line. Anything else gets the traceback, innermost frame first.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self.render_error_page(exc)
            await response(scope, receive, send)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.app, name)

    def render_error_page(self, exc: Exception) -> HTMLResponse:
        if isinstance(exc, TemplateSyntaxError):
            return self._render_template_error(exc)

        frames = self._get_frames(exc.__traceback__)
        is_framework_error = (
            self._is_framework_error(frames[-1]["filename"]) if frames else False
        )

        return error_page(
            "500",
            exc_type=type(exc).__name__,
            exc_msg=str(exc),
            frames=frames,
            is_framework_error=is_framework_error,
            title=type(exc).__name__,
        )

    def _render_template_error(self, exc: TemplateSyntaxError) -> HTMLResponse:
        """Point at the render method line the analyzer rejected."""
        context_lines = []
        if exc.file_path and exc.line:
            context_lines = _context_lines(exc.file_path, exc.line)

        file_display = (
            self._shorten_path(exc.file_path) if exc.file_path else "unknown file"
        )
        return error_page(
            "template_error",
            file_display=file_display,
            error_line=exc.line,
            error_message=exc.message,
            context_lines=context_lines,
            title="Template Error",
        )

    def _get_frames(self, tb: Optional["TracebackType"]) -> List[Dict[str, Any]]:
        frames = []
        for frame, lineno in traceback.walk_tb(tb):
            filename = frame.f_code.co_filename
            frames.append(
                {
                    "filename": filename,
                    "short_filename": self._shorten_path(filename),
                    "func_name": frame.f_code.co_name,
                    "lineno": lineno,
                    "context": _context_lines(filename, lineno),
                    "is_user_code": self._is_user_code(filename),
                }
            )
        return frames

    def _is_framework_error(self, filename: str) -> bool:
        return "src/zinc/" in filename or "site-packages/zinc/" in filename

    def _is_user_code(self, filename: str) -> bool:
        return not self._is_framework_error(filename) and "<frozen" not in filename

    def _shorten_path(self, path: str) -> str:
        cwd = os.getcwd()
        if path.startswith(cwd):
            return os.path.relpath(path, cwd)
        return path

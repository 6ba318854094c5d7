"""Main ASGI application."""

import logging
import os
from typing import Any, Callable, List, Optional, TypeVar

from markupsafe import Markup
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route as StarletteRoute
from starlette.types import Receive, Scope, Send

from zinc.compiler.exceptions import ZincError
from zinc.core.component import Component
from zinc.runtime.factory import render_component
from zinc.runtime.router import Router

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRUTHY = ("1", "true", "yes", "on")


class PageNotFound(ZincError):
    """No route matches the requested path."""


class Zinc:
    """Main ASGI application and configuration.

    Pages are components registered on paths. Path parameters are passed
    to the registered class (or factory) as keyword arguments, and the
    resulting component is rendered for every GET request.

    Usage:
        app = Zinc()

        @app.route("/counter/:start:int")
        class Counter(Component):
            ...
    """

    def __init__(self, debug: Optional[bool] = None) -> None:
        if debug is None:
            debug = os.environ.get("ZINC_DEBUG", "").lower() in TRUTHY
        self.debug = debug
        self.router = Router()

        middleware: List[Middleware] = []
        if self.debug:
            from zinc.runtime.debug import DevErrorMiddleware

            middleware.append(Middleware(DevErrorMiddleware))

        self.app = Starlette(
            routes=[
                StarletteRoute("/{path:path}", self._handle_request, methods=["GET"]),
            ],
            middleware=middleware,
        )

    def route(self, path: str, name: Optional[str] = None) -> Callable[[F], F]:
        """Register a component class or factory on ``path``. Returns it unchanged."""

        def decorator(factory: F) -> F:
            self.router.add_route(path, factory, name)
            return factory

        return decorator

    def add_route(
        self, path: str, factory: Callable[..., Any], name: Optional[str] = None
    ) -> None:
        self.router.add_route(path, factory, name)

    def url_for(self, name: str, **params: Any) -> str:
        return self.router.url_for(name, **params)

    def render_path(self, path: str, request: Any = None) -> Markup:
        """Render the page registered for ``path``.

        Raises:
            PageNotFound: when no route matches.
        """
        if path != "/":
            path = path.rstrip("/")
        match = self.router.match(path)
        if match is None:
            raise PageNotFound(f"No page is registered for {path}")

        factory, params, _ = match
        component = factory(**params)
        if not isinstance(component, Component):
            raise TypeError(
                f"Route {path} produced {type(component).__name__}, not a Component"
            )
        return render_component(component, request)

    async def _handle_request(self, request: Request) -> Response:
        path = request.url.path
        try:
            markup = await run_in_threadpool(self.render_path, path, request)
        except PageNotFound:
            return HTMLResponse("<h1>404 Not Found</h1>", status_code=404)
        except Exception:
            logger.exception("Error rendering %s", path)
            raise
        return HTMLResponse(str(markup))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.app(scope, receive, send)

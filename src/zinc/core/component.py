"""Base class for server-rendered components."""

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from markupsafe import Markup
    from starlette.requests import Request


@dataclass(frozen=True)
class RenderContext:
    """What a render method receives.

    ``html`` is the template function bound to the component being rendered;
    ``request`` is the current request, or None outside of HTTP rendering.
    """

    html: Callable[..., "Markup"]
    request: Optional["Request"] = None


class Component(abc.ABC):
    """A unit of UI rendered to HTML on the server.

    Subclasses implement :meth:`render`, returning the result of one
    ``ctx.html(...)`` call. Instance attributes read in the render method
    are tracked; those that an event handler in the same method writes
    with ``setattr`` stay live in the browser.

    Usage:
        class Counter(Component):
            def __init__(self):
                self.count = 0

            def render(self, ctx):
                return ctx.html(
                    '<button onclick={}>Clicked {} times</button>',
                    lambda: setattr(self, "count", self.count + 1),
                    self.count,
                )
    """

    @abc.abstractmethod
    def render(self, ctx: RenderContext) -> Any:
        raise NotImplementedError


def is_safe_html(value: Any) -> bool:
    """Return True for already-rendered markup that must not be escaped."""
    return hasattr(value, "__html__")

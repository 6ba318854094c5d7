"""Promises that only ever settle in the browser.

A render method may interpolate ``fetch(url).then(f).catch(g)``. On the
server the chain is recorded but nothing runs and nothing is awaited: the
markup gets an empty anchor, and the generated script issues the same
call again in the browser and fills the anchor with the result.
"""

from typing import Any, Callable, Optional, Tuple


class ClientPromise:
    """Server-side stand-in for a JavaScript promise. It never settles."""

    def __init__(
        self,
        call: str,
        args: Tuple[Any, ...] = (),
        chain: Tuple[Tuple[str, Callable[..., Any]], ...] = (),
    ) -> None:
        self.call = call
        self.args = args
        self.chain = chain

    def then(self, callback: Callable[..., Any]) -> "ClientPromise":
        return ClientPromise(self.call, self.args, self.chain + (("then", callback),))

    def catch(self, callback: Callable[..., Any]) -> "ClientPromise":
        return ClientPromise(self.call, self.args, self.chain + (("catch", callback),))

    def __repr__(self) -> str:
        steps = "".join(f".{step}(...)" for step, _ in self.chain)
        args = ", ".join(repr(a) for a in self.args)
        return f"<ClientPromise {self.call}({args}){steps}>"


def fetch(url: str, options: Optional[dict] = None) -> ClientPromise:
    """Request ``url`` from the browser.

    ``options`` is passed to the browser's ``fetch`` as-is, so it must be
    a dict literal in the render method (``{"method": "POST"}``).
    """
    args: Tuple[Any, ...] = (url,) if options is None else (url, options)
    return ClientPromise("fetch", args)

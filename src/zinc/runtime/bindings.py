"""Records collected while rendering, and the element identifier counter."""

import itertools
from dataclasses import dataclass
from typing import Optional, Tuple

ZID_ATTRIBUTE = "data-zid"


@dataclass(frozen=True)
class Binding:
    """Recompute ``source`` into an element when any of ``signals`` changes.

    ``attribute`` is the attribute to set; None means the text content.
    """

    id: str
    signals: Tuple[str, ...]
    source: str
    attribute: Optional[str] = None


@dataclass(frozen=True)
class Handler:
    """An event listener to install on an element."""

    id: str
    event: str
    source: str
    writes: Tuple[str, ...]
    params: Tuple[str, ...] = ()
    # Fields the handler body reads; they need client locals too
    signals: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AsyncBinding:
    """An anchor filled in on the client once a promise settles."""

    id: str
    promise_source: str
    then_callback: str
    catch_callback: Optional[str] = None
    # Fields the chain reads, declared as client locals
    fields: Tuple[str, ...] = ()


class IdCounter:
    """Hands out element identifiers ``_0``, ``_1``, ... for one page render."""

    def __init__(self) -> None:
        self._counter = itertools.count()

    def next(self) -> str:
        return f"_{next(self._counter)}"

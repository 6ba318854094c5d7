"""Errors raised while analyzing, rendering and hydrating components."""

from typing import Optional


class ZincError(Exception):
    """Base class for every error raised by zinc."""


class TemplateSyntaxError(ZincError):
    """A render method could not be analyzed.

    Raised for unparsable source, source that cannot be retrieved, and
    template call sites the analyzer does not understand.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        self.message = message
        self.file_path = file_path
        self.line = line
        location = ""
        if file_path:
            location = f" ({file_path}" + (f", line {line})" if line else ")")
        elif line:
            location = f" (line {line})"
        super().__init__(f"{message}{location}")


class UntranslatableExpression(ZincError):
    """A Python expression has no JavaScript equivalent."""


class TemplateError(ZincError):
    """A template call does not match its arguments."""


class HydrationError(ZincError):
    """A value that must be replayed on the client cannot be."""


class ScriptGenerationError(ZincError):
    """The client script cannot be generated for a component."""

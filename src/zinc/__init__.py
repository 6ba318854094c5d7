from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("zinc")
except PackageNotFoundError:
    __version__ = "unknown"

from zinc.compiler.exceptions import (
    HydrationError,
    ScriptGenerationError,
    TemplateError,
    TemplateSyntaxError,
    ZincError,
)
from zinc.core.component import Component, RenderContext
from zinc.core.promise import ClientPromise, fetch
from zinc.runtime.app import PageNotFound, Zinc
from zinc.runtime.factory import create_html_factory, render_component

__all__ = [
    "Zinc",
    "Component",
    "RenderContext",
    "ClientPromise",
    "fetch",
    "create_html_factory",
    "render_component",
    "ZincError",
    "TemplateSyntaxError",
    "TemplateError",
    "HydrationError",
    "ScriptGenerationError",
    "PageNotFound",
]

"""Routing system."""

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

ComponentFactory = Callable[..., Any]

# {name:type} or {name}, then :name:type or :name
_PARAM = re.compile(r"\{(\w+)(?::\w+)?\}|:(\w+)(?::\w+)?")


class Route:
    """Represents a single route pattern."""

    def __init__(
        self, pattern: str, factory: ComponentFactory, name: Optional[str] = None
    ) -> None:
        self.pattern = pattern
        self.factory = factory
        self.name = name
        self.param_types: Dict[str, str] = {}

        # Compile pattern to regex
        self.regex = self._compile_pattern(pattern)

    def _compile_pattern(self, pattern: str) -> "re.Pattern[str]":
        """Convert '/projects/:id:int' to regex."""
        if pattern == "/":
            return re.compile(r"^/$")

        regex_parts = []
        for part in pattern.split("/"):
            if not part:
                continue

            name = None
            type_name = "str"
            if part.startswith(":"):
                # :id or :id:int
                content = part[1:]
                name, _, type_name = content.partition(":")
            elif part.startswith("{") and part.endswith("}"):
                # {id} or {id:int}
                content = part[1:-1]
                name, _, type_name = content.partition(":")

            if name:
                type_name = type_name or "str"
                self.param_types[name] = type_name
                regex = r"\d+" if type_name == "int" else r"[^/]+"
                regex_parts.append(f"(?P<{name}>{regex})")
            else:
                regex_parts.append(re.escape(part))

        return re.compile("^/" + "/".join(regex_parts) + "$")

    def match(self, path: str) -> Optional[Dict[str, Any]]:
        """Try to match path, return params if successful."""
        match = self.regex.match(path)
        if match is None:
            return None
        return {
            name: self._coerce_value(value, self.param_types.get(name, "str"))
            for name, value in match.groupdict().items()
        }

    def _coerce_value(self, value: str, type_name: str) -> Any:
        if type_name == "int":
            return int(value)
        return value

    def url(self, **params: Any) -> str:
        """Build a path for this route from its parameters."""

        def replace(match: "re.Match[str]") -> str:
            name = match.group(1) or match.group(2)
            return "{" + name + "}"

        return _PARAM.sub(replace, self.pattern).format(**params)


class Router:
    """Routes request paths to component factories."""

    def __init__(self) -> None:
        self.routes: List[Route] = []

    def add_route(
        self, pattern: str, factory: ComponentFactory, name: Optional[str] = None
    ) -> Route:
        route = Route(pattern, factory, name)
        self.routes.append(route)
        logger.debug("Registered route %s -> %s", pattern, getattr(factory, "__name__", factory))
        return route

    def match(
        self, path: str
    ) -> Optional[Tuple[ComponentFactory, Dict[str, Any], Optional[str]]]:
        """Match URL path to a factory. Returns: (factory, params, route name)."""
        for route in self.routes:
            params = route.match(path)
            if params is not None:
                return route.factory, params, route.name
        return None

    def url_for(self, name: str, **params: Any) -> str:
        for route in self.routes:
            if route.name == name:
                return route.url(**params)
        raise KeyError(f"Route '{name}' not found")

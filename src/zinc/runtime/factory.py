"""The template function handed to render methods.

A component's render method calls ``ctx.html(template, *values)``. The
factory matches the call to its analyzed site, inlines every inert value
and marks every live one (event handlers, reads of fields that a handler
writes, promise chains) with a placeholder token. The markup is then
parsed, the placeholders are resolved against real elements, each such
element is stamped with a ``data-zid`` identifier, and the collected
records are turned into the client script.

Nested components are rendered after their parent's markup is resolved,
sharing the parent's identifier counter, so identifiers run
parent-before-child and stay unique across one page.
"""

import itertools
import logging
import re
import secrets
import sys
import types
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from markupsafe import Markup

from zinc.compiler.analyzer import (
    ExpressionClassification,
    analyze_render,
    split_template,
)
from zinc.compiler.codegen.printer import js_string
from zinc.compiler.codegen.script import generate_script
from zinc.compiler.exceptions import HydrationError, TemplateError
from zinc.core.component import Component, RenderContext, is_safe_html
from zinc.runtime.bindings import (
    ZID_ATTRIBUTE,
    AsyncBinding,
    Binding,
    Handler,
    IdCounter,
)
from zinc.runtime.escape import escape_html

logger = logging.getLogger(__name__)

# `name=`, `name="` or `name='` at the end of the markup so far
ATTR_SLOT = re.compile(r"""\s([^\s"'<>/=]+)\s*=\s*(["']?)$""")

Site = Tuple[ExpressionClassification, ...]


class Rendered(Markup):
    """Markup produced by one template call.

    ``body`` is the markup without the trailing script; ``owner`` is the
    factory that produced it. Markup derived from it by string operations
    has no owner and is treated as ordinary safe content.
    """

    def __new__(
        cls,
        base: Any = "",
        encoding: Optional[str] = None,
        errors: str = "strict",
        body: Optional[str] = None,
        owner: Optional["HtmlFactory"] = None,
    ) -> "Rendered":
        obj = super().__new__(cls, base, encoding, errors)
        obj.body = str(obj) if body is None else body
        obj.owner = owner
        return obj


def _text(value: Any) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return "true"
    return str(value)


def _client_text(value: Any) -> str:
    """The text the browser shows for ``value`` assigned to ``textContent``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _index_sites(
    classifications: Sequence[ExpressionClassification],
) -> Dict[str, List[Tuple[int, Site]]]:
    grouped: Dict[str, List[Tuple[int, List[ExpressionClassification]]]] = {}
    for c in classifications:
        if c.slot == 0:
            grouped.setdefault(c.template, []).append((c.lineno, [c]))
        else:
            grouped[c.template][-1][1].append(c)
    return {
        template: [(line, tuple(slots)) for line, slots in entries]
        for template, entries in grouped.items()
    }


class HtmlFactory:
    """Template function bound to one component instance.

    One factory serves every ``html(...)`` call of one render, and keeps
    the bindings, handlers and async bindings recorded so far.
    """

    def __init__(
        self,
        component: Component,
        request: Any = None,
        id_counter: Optional[IdCounter] = None,
    ) -> None:
        self.component = component
        self.request = request
        self.id_counter = id_counter if id_counter is not None else IdCounter()

        self.classifications = analyze_render(component.render)
        self.written_signals: Set[str] = {
            w for c in self.classifications for w in c.writes
        }
        self.bindings: List[Binding] = []
        self.handlers: List[Handler] = []
        self.async_bindings: List[AsyncBinding] = []

        self._sites = _index_sites(self.classifications)
        self._nonce = secrets.token_hex(4)
        self._counter = itertools.count()
        self._token_re = re.compile(rf"(__zinc_{self._nonce}_\d+__)")
        self._live: Dict[str, Tuple[Any, ExpressionClassification]] = {}
        self._deferred: Dict[str, Any] = {}

    # -- matching calls to analyzed sites --------------------------------

    def _site_for(self, template: str, count: int, caller_line: int) -> Optional[Site]:
        candidates = [
            (line, slots)
            for line, slots in self._sites.get(template, ())
            if len(slots) == count
        ]
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0][1]
        # Several sites share the template text: take the closest one at or
        # above the calling line.
        above = [entry for entry in candidates if entry[0] <= caller_line]
        if not above:
            return candidates[0][1]
        return max(above, key=lambda entry: entry[0])[1]

    # -- tokens ----------------------------------------------------------

    def _token(self) -> str:
        return f"__zinc_{self._nonce}_{next(self._counter)}__"

    def _defer(self, content: Any) -> str:
        token = self._token()
        self._deferred[token] = content
        return token

    def _mark(self, value: Any, classification: ExpressionClassification) -> str:
        if not classification.translatable:
            raise HydrationError(
                f"{type(self.component).__name__}: the expression "
                f"`{classification.python_source}` (line {classification.lineno}) "
                "must run in the browser but has no JavaScript form"
            )
        token = self._token()
        self._live[token] = (value, classification)
        return token

    def _reactive(self, classification: ExpressionClassification) -> bool:
        return any(s in self.written_signals for s in classification.signals)

    def _is_live(self, classification: ExpressionClassification) -> bool:
        if classification.is_async or classification.is_event:
            return True
        return not classification.is_function and self._reactive(classification)

    def _is_content(self, value: Any, classification: ExpressionClassification) -> bool:
        # Markup, components and sequences are spliced, never bound
        if classification.is_async or classification.is_event:
            return False
        return isinstance(
            value, (Component, list, tuple, types.GeneratorType)
        ) or is_safe_html(value)

    # -- inert values ----------------------------------------------------

    def _inline(self, value: Any) -> str:
        if value is None or value is False:
            return ""
        if isinstance(value, Rendered) and value.owner is self:
            return self._defer(value.body)
        if is_safe_html(value):
            return self._defer(str(value.__html__()))
        if isinstance(value, Component):
            return self._defer(value)
        if isinstance(value, (list, tuple, types.GeneratorType)):
            return "".join(self._inline(item) for item in value)
        return escape_html(value)

    def _attribute_value(self, value: Any, quote: str) -> str:
        if value is True:
            text = ""
        elif is_safe_html(value):
            text = str(value.__html__())
        else:
            text = escape_html(value)
            if quote == "'":
                text = text.replace("'", "&#39;")
        return text if quote else f'"{text}"'

    # -- the template function -------------------------------------------

    def __call__(self, template: str, *values: Any) -> Markup:
        try:
            segments = split_template(template)
        except ValueError as e:
            raise TemplateError(str(e)) from e
        if len(segments) - 1 != len(values):
            raise TemplateError(
                f"Template has {len(segments) - 1} slots but {len(values)} "
                f"values were given: {template!r}"
            )

        site = self._site_for(template, len(values), sys._getframe(1).f_lineno)
        if site is None and values:
            logger.debug(
                "%s: no analyzed site for template %r, values are inlined",
                type(self.component).__name__,
                template,
            )

        markup = segments[0]
        for i, value in enumerate(values):
            classification = site[i] if site is not None else None
            following = segments[i + 1]

            live = classification is not None and self._is_live(classification)
            if live and self._is_content(value, classification):
                logger.debug(
                    "%s: `%s` (line %s) holds %s, spliced without a binding",
                    type(self.component).__name__,
                    classification.python_source,
                    classification.lineno,
                    type(value).__name__,
                )
                live = False

            if live:
                if classification.is_async:
                    markup += f'<span {ZID_ATTRIBUTE}="{self._mark(value, classification)}"></span>'
                else:
                    markup += self._mark(value, classification)
            else:
                in_tag = markup.rfind("<") > markup.rfind(">")
                attr = ATTR_SLOT.search(markup) if in_tag else None
                if attr is None:
                    markup += self._inline(value)
                elif value is None or value is False:
                    quote = attr.group(2)
                    if not quote or following.startswith(quote):
                        # Drop the whole attribute
                        markup = markup[: attr.start()]
                        if quote:
                            following = following[1:]
                else:
                    markup += self._attribute_value(value, attr.group(2))

            markup += following

        if self._live:
            markup = self._resolve_live(markup)
        body = self._token_re.sub(self._resolve_deferred, markup)

        logger.debug(
            "%s: %d bindings, %d handlers, %d async bindings",
            type(self.component).__name__,
            len(self.bindings),
            len(self.handlers),
            len(self.async_bindings),
        )

        output = body
        if self.bindings or self.handlers or self.async_bindings:
            output += generate_script(
                self.component, self.bindings, self.handlers, self.async_bindings
            )
        return Rendered(output, body=body, owner=self)

    # -- resolving placeholders against the parsed tree -------------------

    def _element_id(self, element: Tag) -> str:
        existing = element.get(ZID_ATTRIBUTE)
        if existing and not self._token_re.fullmatch(existing):
            return existing
        element_id = self.id_counter.next()
        element[ZID_ATTRIBUTE] = element_id
        return element_id

    def _resolve_live(self, markup: str) -> str:
        soup = BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)
        elements = soup.find_all(True)

        # Pass A: event handlers. Their writes decide what is reactive below.
        for element in elements:
            for name, value in list(element.attrs.items()):
                slot = self._live.get(value)
                if slot is None or not slot[1].is_event:
                    continue
                classification = slot[1]
                element_id = self._element_id(element)
                del element[name]
                self.written_signals.update(classification.writes)
                self.handlers.append(
                    Handler(
                        id=element_id,
                        event=name,
                        source=classification.body_source or "",
                        writes=classification.writes,
                        params=classification.params,
                        signals=classification.signals,
                    )
                )

        # Pass B: attribute bindings, then text bindings.
        for element in elements:
            for name, value in list(element.attrs.items()):
                if name == ZID_ATTRIBUTE or not self._token_re.search(value):
                    continue
                self._bind_attribute(element, name, value)

        for node in list(soup.find_all(string=True)):
            if type(node) is not NavigableString or not self._token_re.search(node):
                continue
            for chunk in self._split_deferred(node):
                if any(t in self._live for t in self._token_re.findall(chunk)):
                    self._bind_text(soup, chunk)

        # Async anchors get their identifiers last.
        for element in soup.find_all(True):
            slot = self._live.get(element.get(ZID_ATTRIBUTE, ""))
            if slot is None:
                continue
            classification = slot[1]
            element_id = self.id_counter.next()
            element[ZID_ATTRIBUTE] = element_id
            self.async_bindings.append(
                AsyncBinding(
                    id=element_id,
                    promise_source=classification.promise_source or "",
                    then_callback=classification.then_callback or "",
                    catch_callback=classification.catch_callback,
                    fields=classification.reads,
                )
            )

        output = str(soup)
        unresolved = [
            self._live[t][1] for t in self._token_re.findall(output) if t in self._live
        ]
        self._live.clear()
        if unresolved:
            c = unresolved[0]
            raise TemplateError(
                f"{type(self.component).__name__}: `{c.python_source}` (line {c.lineno}) "
                "is live but sits where no binding can reach it "
                "(script, style or comment content)"
            )
        return output

    def _compose(self, text: str) -> Tuple[str, Optional[str], Tuple[str, ...]]:
        """Resolve the tokens in ``text``.

        Returns the literal text, the JavaScript source that recomputes it
        (None when nothing in it is reactive) and the fields it depends on.
        """
        pieces = self._token_re.split(text)
        literal: List[str] = []
        sources: List[str] = []
        signals: List[str] = []
        reactive: List[ExpressionClassification] = []

        for i, piece in enumerate(pieces):
            slot = self._live.get(piece) if i % 2 else None
            if slot is None:
                if piece:
                    literal.append(piece)
                    sources.append(js_string(piece))
                continue
            value, classification = slot
            if self._reactive(classification):
                literal.append(_client_text(value))
                reactive.append(classification)
                sources.append(f"({classification.source})")
                signals.extend(
                    s for s in classification.signals if s not in signals
                )
            else:
                literal.append(_text(value))
                sources.append(js_string(_text(value)))

        if not reactive:
            return "".join(literal), None, ()
        if len(sources) == 1:
            return "".join(literal), reactive[0].source, tuple(signals)
        source = " + ".join(sources)
        if not sources[0].startswith('"'):
            source = '"" + ' + source
        return "".join(literal), source, tuple(signals)

    def _bind_attribute(self, element: Tag, name: str, value: str) -> None:
        whole = self._live.get(value)
        literal, source, signals = self._compose(value)

        if whole is not None:
            current = whole[0]
            if current is None or current is False:
                del element[name]
            else:
                element[name] = "" if current is True else literal
        else:
            element[name] = literal

        if source is not None:
            element_id = self._element_id(element)
            self.bindings.append(Binding(element_id, signals, source, attribute=name))

    def _split_deferred(self, node: NavigableString) -> List[NavigableString]:
        """Split a text node so deferred content sits in nodes of its own."""
        chunks: List[str] = []
        current = ""
        for piece in self._token_re.split(str(node)):
            if piece in self._deferred:
                if current:
                    chunks.append(current)
                chunks.append(piece)
                current = ""
            else:
                current += piece
        if current:
            chunks.append(current)
        if len(chunks) <= 1:
            return [node]
        nodes = [NavigableString(chunk) for chunk in chunks]
        node.replace_with(*nodes)
        return nodes

    def _bind_text(self, soup: BeautifulSoup, node: NavigableString) -> None:
        literal, source, signals = self._compose(str(node))
        replacement = NavigableString(literal)
        node.replace_with(replacement)
        if source is None:
            return

        parent = replacement.parent
        if isinstance(parent, BeautifulSoup) or parent is None or len(parent.contents) > 1:
            # Updating the parent's text would wipe its other children.
            parent = replacement.wrap(soup.new_tag("span"))
        element_id = self._element_id(parent)
        self.bindings.append(Binding(element_id, signals, source))

    def _resolve_deferred(self, match: "re.Match[str]") -> str:
        content = self._deferred.pop(match.group(0), None)
        if content is None:
            return match.group(0)
        if isinstance(content, Component):
            return str(render_component(content, self.request, self.id_counter))
        return content


def create_html_factory(
    component: Component,
    request: Any = None,
    id_counter: Optional[IdCounter] = None,
) -> HtmlFactory:
    """Create the template function for one render of ``component``.

    Pass the parent's ``id_counter`` when rendering a nested component so
    identifiers stay unique across the page.
    """
    return HtmlFactory(component, request, id_counter)


def render_component(
    component: Component,
    request: Any = None,
    id_counter: Optional[IdCounter] = None,
) -> Markup:
    """Render ``component`` to markup, followed by its client script if any."""
    factory = create_html_factory(component, request, id_counter)
    output = component.render(RenderContext(html=factory, request=request))
    if isinstance(output, Markup):
        return output
    return Markup(output)
